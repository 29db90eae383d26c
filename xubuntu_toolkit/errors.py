"""Exception hierarchy shared by every procedure."""

from typing import List, Optional, Sequence


class ToolkitError(Exception):
    """Base class for expected, operator-facing failures."""


class PreconditionFailed(ToolkitError):
    """The host is not in a state where the procedure may run."""


class ValidationError(ToolkitError):
    """Operator input was rejected."""


class AcquisitionExhausted(ToolkitError):
    """Every strategy for a resource failed."""

    def __init__(self, identifier: str, attempted: Sequence[str]):
        self.identifier = identifier
        self.attempted: List[str] = list(attempted)
        tried = ", ".join(self.attempted) or "no strategies"
        super().__init__(f"Could not acquire {identifier} (tried: {tried})")


class MutationFailed(ToolkitError):
    """A command that changes the system exited non-zero."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
    ):
        self.command = list(command) if command else []
        self.returncode = returncode
        super().__init__(message)


class SnapshotError(ToolkitError):
    """A snapshot could not be created."""


class SnapshotIncomplete(SnapshotError):
    """A snapshot is missing one or more expected paths."""


class RestoreFailed(SnapshotError):
    """Restoring a snapshot errored part way through."""
