"""
VinScan — Session Registry

In-memory index of live scan sessions and their lookup routers.

Each client holds at most one uncommitted session: opening a new scan for a
client cancels the previous one (its router is cancelled and its data is
discarded). A closed session stays readable until the same client opens
its next scan, or until it is among the oldest once more than
`closed_scan_retention` closed sessions are held.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict, NamedTuple, Optional
from uuid import UUID

from vinscan.common.errors import SessionClosedError
from vinscan.common.logger import get_logger
from vinscan.config import get_settings
from vinscan.services.inventory import InventoryGateway
from vinscan.services.lookup_router import CarLookupRouter
from vinscan.services.scan_session import ScanSession

logger = get_logger(__name__)


class ActiveScan(NamedTuple):
    session: ScanSession
    router: CarLookupRouter


class SessionRegistry:
    def __init__(
        self,
        inventory: InventoryGateway,
        router_factory: Callable[[ScanSession, InventoryGateway], CarLookupRouter] = CarLookupRouter,
        closed_retention: int | None = None,
    ) -> None:
        self.inventory = inventory
        self._router_factory = router_factory
        self.closed_retention = (
            get_settings().closed_scan_retention if closed_retention is None else closed_retention
        )
        # Insertion order doubles as age order for eviction
        self._scans: Dict[UUID, ActiveScan] = {}
        self._current_by_client: Dict[str, UUID] = {}
        self._lock = threading.Lock()

    def open(self, client_id: str = "default") -> ActiveScan:
        """Start a new scan for `client_id`, superseding any uncommitted one."""
        session = ScanSession(client_id=client_id)
        scan = ActiveScan(session, self._router_factory(session, self.inventory))

        with self._lock:
            previous_id = self._current_by_client.get(client_id)
            previous = self._scans.pop(previous_id, None) if previous_id else None
            self._scans[session.session_id] = scan
            self._current_by_client[client_id] = session.session_id
            self._evict_closed()

        if previous is not None and not previous.router.closed:
            try:
                previous.router.cancel()
            except SessionClosedError:
                # A decision landed between the check and the cancel
                logger.debug(
                    "Previous scan closed before it could be superseded",
                    extra={"context": {"client_id": client_id, "session_id": str(previous_id)}},
                )
            else:
                logger.info(
                    "Superseded uncommitted scan",
                    extra={"context": {"client_id": client_id, "session_id": str(previous_id)}},
                )
        return scan

    def get(self, session_id: UUID) -> Optional[ActiveScan]:
        with self._lock:
            return self._scans.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._scans)

    def _evict_closed(self) -> None:
        """Forget the oldest closed scans beyond the retention limit. Caller holds the lock."""
        closed = [session_id for session_id, scan in self._scans.items() if scan.router.closed]
        excess = len(closed) - self.closed_retention
        for session_id in closed[:max(excess, 0)]:
            client_id = self._scans.pop(session_id).session.client_id
            if self._current_by_client.get(client_id) == session_id:
                del self._current_by_client[client_id]
        if excess > 0:
            logger.debug(f"Evicted {excess} closed scan(s)")
