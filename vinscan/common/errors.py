"""
VinScan — Error Taxonomy

Algorithmic stages never raise; recognition stages return tagged
`RecognitionFailure` results. Exceptions are reserved for I/O against the
inventory collaborator, the camera, and misuse of a session's state machine.
"""

from __future__ import annotations

from vinscan.common.schemas import FailureKind


class VinScanError(Exception):
    """Base class for all VinScan errors. Carries the user-facing failure kind."""

    kind: FailureKind | None = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class LookupFailedError(VinScanError):
    """Inventory collaborator unreachable or erroring. Retryable."""

    kind = FailureKind.LOOKUP_FAILED


class PermissionDeniedError(VinScanError):
    """Camera access denied, or re-requested inside the denial cooldown."""

    kind = FailureKind.PERMISSION_DENIED


class InvalidTransitionError(VinScanError):
    """A router transition that is not legal from the current state."""


class InvalidDecisionError(InvalidTransitionError):
    """A decision that the router's current state does not allow."""


class SessionClosedError(VinScanError):
    """The session already emitted its terminal decision or was cancelled."""
