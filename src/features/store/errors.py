"""Domain exceptions for the checkpoint store.

Startup errors (not found, corrupt, resume integrity) are raised while the
prior store is read; persistence errors are raised while writing during a run.
"""

from pathlib import Path


class CheckpointStoreError(Exception):
    """Base exception for all checkpoint store errors."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        """Initialize the store error.

        Args:
            message: Human-readable error message.
            path: Store file the error refers to.
        """
        super().__init__(message)
        self.message = message
        self.path = path

    def to_dict(self) -> dict[str, str | None]:
        """Convert error to dictionary for logging."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
            "path": str(self.path) if self.path else None,
        }


class StoreNotFoundError(CheckpointStoreError):
    """Raised when no store file exists at the given path."""

    def __init__(self, path: Path) -> None:
        """Initialize the error with the missing path."""
        super().__init__(f"Store not found: {path}", path)


class CorruptStoreError(CheckpointStoreError):
    """Raised when a store file is not a parseable JSON array of objects."""


class ResumeIntegrityError(CheckpointStoreError):
    """Raised when a resume is requested but the trailing checkpoint is bad.

    The store is left untouched; the operator must either pass an explicit
    starting cursor or discard the store.
    """


class StorePersistenceError(CheckpointStoreError):
    """Raised when writing the store keeps failing."""

    def __init__(self, path: Path, attempts: int, cause: OSError) -> None:
        """Initialize the persistence error.

        Args:
            path: Store file that could not be written.
            attempts: Number of write attempts made.
            cause: The last underlying I/O error.
        """
        super().__init__(
            f"Failed to write store after {attempts} attempt(s): {cause}", path
        )
        self.attempts = attempts
        self.cause = cause


class StoreClosedError(CheckpointStoreError):
    """Raised when appending to a store that has already been finalized."""
