"""
Exception hierarchy for backup operations.

Every failure category has its own class and a short ``label`` so the CLI
can tell the operator which step failed without parsing the message.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base exception for backup and restore failures."""

    label = "Backup error"


class PrerequisiteMissingError(BackupError):
    """Raised when the host lacks something every command needs."""

    label = "Missing prerequisites"

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class SourceNotFoundError(BackupError):
    """Raised when the directory to back up does not exist."""

    label = "Source not found"


class InsufficientSpaceError(BackupError):
    """Raised when the backup directory cannot hold the new archive."""

    label = "Insufficient space"

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Required: {required:,} bytes, available: {available:,} bytes"
        )


class PackagingFailedError(BackupError):
    """Raised when the archive could not be written."""

    label = "Packaging failed"


class EmptyArchiveError(BackupError):
    """Raised when packaging reported success but produced no data."""

    label = "Empty archive"


class IntegrityError(BackupError):
    """Base exception for digest and sidecar failures."""

    label = "Integrity error"


class DigestComputeError(IntegrityError):
    """Raised when the archive digest cannot be computed."""

    label = "Digest computation failed"


class SidecarWriteError(IntegrityError):
    """Raised when the digest sidecar cannot be written."""

    label = "Sidecar write failed"


class SidecarMissingError(IntegrityError):
    """Raised when an archive has no digest sidecar."""

    label = "Sidecar missing"


class SidecarInvalidError(IntegrityError):
    """Raised when a sidecar exists but cannot be parsed."""

    label = "Sidecar invalid"


class DigestMismatchError(IntegrityError):
    """Raised when an archive does not match its recorded digest."""

    label = "Digest mismatch"


class RestoreUnpackError(BackupError):
    """Raised when extracting a verified archive fails."""

    label = "Restore failed"


class RotationFailedError(BackupError):
    """Raised when an old archive or its sidecar cannot be deleted."""

    label = "Rotation failed"


class InvalidArgumentError(BackupError):
    """Raised when a command receives an unusable argument."""

    label = "Invalid argument"
