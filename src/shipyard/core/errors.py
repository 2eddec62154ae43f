"""Typed error kinds raised by shipyard subsystems.

Every error can carry the id of the most recent backup that is known to be
good for the affected document, so the CLI can tell the user exactly which
backup to restore without re-deriving it.
"""


class ShipyardError(Exception):
    """Base class for all recoverable shipyard failures."""

    def __init__(self, message: str, *, last_good_backup_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.last_good_backup_id = last_good_backup_id

    def with_backup(self, backup_id: str | None) -> "ShipyardError":
        """Attach a last-known-good backup id if none is set yet."""
        if self.last_good_backup_id is None:
            self.last_good_backup_id = backup_id
        return self


class NotFound(ShipyardError):
    """A component, registry entry, config document or backup does not exist."""


class InvalidIdentifier(ShipyardError):
    """A registry identifier or logical name does not match the network grammar."""


class InvalidVersion(ShipyardError):
    """A version string is not a valid MAJOR.MINOR.PATCH semver."""


class InvalidConfig(ShipyardError):
    """A configuration value or project file failed validation."""


class DependencyOrderViolation(ShipyardError):
    """Deploy units were requested in an order their dependencies forbid."""


class ToolchainFailure(ShipyardError):
    """An external toolchain step exited non-zero or could not be started."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        output: str = "",
        last_good_backup_id: str | None = None,
    ) -> None:
        super().__init__(message, last_good_backup_id=last_good_backup_id)
        self.exit_code = exit_code
        self.output = output


class TimeoutExceeded(ToolchainFailure):
    """A blocking external call exceeded its time budget."""


class IrreversibleOperationBlocked(ShipyardError):
    """A production-class destructive operation was attempted without override."""


class LockUnavailable(ShipyardError):
    """Another process currently holds the project's single-writer lock."""


class ReleaseBlocked(ShipyardError):
    """Release validation found a failure in a blocking category."""
