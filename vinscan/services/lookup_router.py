"""
VinScan — Car Lookup Router

Per-session state machine deciding what may happen to a recognized VIN:

    IDLE ──begin──▶ CHECKING ──lookup──▶ FOUND      ──▶ DECIDED (MoveToInventory)
      │                 │       └──────▶ NOT_FOUND  ──▶ DECIDED (AddDirectlyToInventory
      │                 │                                        | AddToNewArrivals)
      │                 └──error──▶ LOOKUP_FAILED ──retry──▶ CHECKING
      └──no VIN──▶ MANUAL_ENTRY_REQUIRED
    any non-terminal state ──cancel──▶ CANCELLED

At most one decision is emitted per session; afterwards the session's data
is discarded and every further call raises `SessionClosedError`. A lookup
that completes after the session was cancelled is dropped unread.
"""

from __future__ import annotations

import threading
from typing import FrozenSet, Optional

from vinscan.common.errors import (
    InvalidDecisionError,
    InvalidTransitionError,
    LookupFailedError,
    SessionClosedError,
)
from vinscan.common.logger import get_logger
from vinscan.common.schemas import (
    AddDirectlyToInventory,
    AddToNewArrivals,
    Cancelled,
    Decision,
    DecisionType,
    InventoryLocation,
    LookupOutcome,
    LookupState,
    MoveToInventory,
)
from vinscan.config import get_settings
from vinscan.services.inventory import InventoryGateway
from vinscan.services.scan_session import ScanSession

logger = get_logger(__name__)

ALLOWED_DECISIONS: dict[LookupState, FrozenSet[DecisionType]] = {
    LookupState.FOUND: frozenset({DecisionType.MOVE_TO_INVENTORY}),
    LookupState.NOT_FOUND: frozenset({DecisionType.ADD_TO_INVENTORY, DecisionType.ADD_TO_NEW_ARRIVALS}),
}
TERMINAL_STATES = frozenset({LookupState.DECIDED, LookupState.CANCELLED})


class CarLookupRouter:
    """Routes one scan session to exactly one inventory decision (or none)."""

    def __init__(
        self,
        session: ScanSession,
        inventory: InventoryGateway,
        default_target: InventoryLocation | None = None,
    ) -> None:
        self.session = session
        self.inventory = inventory
        self.default_target = default_target or get_settings().default_target_location
        self._state = LookupState.IDLE
        self._outcome: Optional[LookupOutcome] = None
        self._decision: Optional[Decision] = None
        self._lock = threading.RLock()
        self._generation = 0
        self._in_flight = False

    # ── Introspection ─────────────────────────────────────────────────────────

    @property
    def state(self) -> LookupState:
        return self._state

    @property
    def outcome(self) -> Optional[LookupOutcome]:
        return self._outcome

    @property
    def decision(self) -> Optional[Decision]:
        return self._decision

    @property
    def closed(self) -> bool:
        return self._state in TERMINAL_STATES

    def allowed_decisions(self) -> FrozenSet[DecisionType]:
        return ALLOWED_DECISIONS.get(self._state, frozenset())

    # ── Transitions ───────────────────────────────────────────────────────────

    def begin(self) -> LookupState:
        with self._lock:
            self._ensure_open()
            if self._state != LookupState.IDLE:
                raise InvalidTransitionError(f"Router already started ({self._state.value})")

            if self.session.normalized_vin is None:
                self._state = LookupState.MANUAL_ENTRY_REQUIRED
                logger.info("No VIN to look up, manual entry required", extra={"context": self._context()})
            else:
                self._state = LookupState.CHECKING
            return self._state

    def lookup(self) -> LookupOutcome:
        """
        Query the inventory for the session's VIN. Issued once; only a failed
        lookup may be retried. Returns the cached outcome when already resolved.
        """
        with self._lock:
            self._ensure_open()
            if self._state == LookupState.IDLE:
                self.begin()
            if self._state in (LookupState.FOUND, LookupState.NOT_FOUND):
                return self._outcome
            if self._state not in (LookupState.CHECKING, LookupState.LOOKUP_FAILED):
                raise InvalidTransitionError(f"Cannot look up from {self._state.value}")
            if self._in_flight:
                raise InvalidTransitionError("Lookup already in progress")

            self._state = LookupState.CHECKING
            self._in_flight = True
            self._generation += 1
            generation = self._generation
            vin = self.session.normalized_vin

        try:
            summary = self.inventory.find_by_vin(vin)
        except Exception as exc:
            with self._lock:
                self._in_flight = False
                if self._is_stale(generation):
                    raise SessionClosedError("Session cancelled during lookup") from exc
                self._state = LookupState.LOOKUP_FAILED
            logger.warning(f"Inventory lookup failed: {exc}", extra={"context": self._context()})
            if isinstance(exc, LookupFailedError):
                raise
            raise LookupFailedError(f"Inventory lookup failed: {exc}") from exc

        with self._lock:
            self._in_flight = False
            if self._is_stale(generation):
                logger.info("Discarding lookup result for cancelled session", extra={"context": self._context()})
                raise SessionClosedError("Session cancelled during lookup")

            self._outcome = LookupOutcome(matched=summary is not None, existing_vehicle=summary)
            self._state = LookupState.FOUND if summary is not None else LookupState.NOT_FOUND
            logger.info("Lookup resolved", extra={"context": self._context()})
            return self._outcome

    def decide(
        self,
        kind: DecisionType,
        target_location: InventoryLocation | None = None,
    ) -> Decision:
        """Apply one user-selected decision. The session closes on success."""
        if kind == DecisionType.CANCELLED:
            return self.cancel()

        with self._lock:
            self._ensure_open()
            if kind not in self.allowed_decisions():
                raise InvalidDecisionError(f"{kind.value} is not allowed from {self._state.value}")

            decision = self._build(kind, target_location)
            self._apply(decision)

            self._decision = decision
            self._state = LookupState.DECIDED
            self.session.discard()
            logger.info(f"Decision emitted: {kind.value}", extra={"context": self._context()})
            return decision

    def cancel(self) -> Optional[Cancelled]:
        """
        Abandon the session from any non-terminal state. Returns the emitted
        `Cancelled` decision, or None when there never was a VIN to route.
        """
        with self._lock:
            self._ensure_open()
            had_vin = self._state != LookupState.MANUAL_ENTRY_REQUIRED and self.session.normalized_vin is not None
            self._state = LookupState.CANCELLED
            self._generation += 1
            self.session.discard()
            self._decision = Cancelled() if had_vin else None
            logger.info("Session cancelled", extra={"context": self._context()})
            return self._decision

    # ── Internals ─────────────────────────────────────────────────────────────

    def _build(self, kind: DecisionType, target_location: InventoryLocation | None) -> Decision:
        result = self.session.result
        vin = self.session.normalized_vin
        checksum_valid = bool(result and result.vin and result.vin.checksum_valid)

        if kind == DecisionType.MOVE_TO_INVENTORY:
            return MoveToInventory(
                existing_id=self._outcome.existing_vehicle.id,
                target_location=target_location or self.default_target,
            )
        if kind == DecisionType.ADD_TO_INVENTORY:
            return AddDirectlyToInventory(vin=vin, checksum_valid=checksum_valid)
        return AddToNewArrivals(vin=vin, checksum_valid=checksum_valid)

    def _apply(self, decision: Decision) -> None:
        if isinstance(decision, MoveToInventory):
            self.inventory.move_to_inventory(decision.existing_id, decision.target_location)
        elif isinstance(decision, AddDirectlyToInventory):
            self.inventory.create_inventory_entry(decision.vin, self.session.result, decision.checksum_valid)
        elif isinstance(decision, AddToNewArrivals):
            self.inventory.create_arrival_entry(decision.vin, self.session.result, decision.checksum_valid)

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation or self._state != LookupState.CHECKING

    def _ensure_open(self) -> None:
        if self.closed or self.session.closed:
            raise SessionClosedError(f"Session {self.session.session_id} is closed")

    def _context(self) -> dict:
        return {
            "session_id": str(self.session.session_id),
            "state": self._state.value,
            "vin": self.session.normalized_vin,
        }
