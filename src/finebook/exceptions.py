# ABOUTME: Custom exception hierarchy for Finebook
# ABOUTME: Provides structured error handling for ledger operations


class FinebookError(Exception):
    """Base exception for all Finebook errors."""


class PersistenceUnavailableError(FinebookError):
    """Ledger storage could not be read or written."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MemberNotFoundError(FinebookError):
    """Member ID doesn't exist."""


class CategoryNotFoundError(FinebookError):
    """Category key doesn't exist."""


class RecoveryError(FinebookError):
    """The cleared ledger cannot be restored."""


class NoBackupAvailableError(RecoveryError):
    """No snapshot was taken, or it was already restored."""


class BackupExpiredError(RecoveryError):
    """The recovery window has closed."""


class ValidationError(FinebookError):
    """Invalid input provided to a ledger operation."""
