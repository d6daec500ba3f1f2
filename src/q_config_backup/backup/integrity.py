"""
Digest computation and sidecar handling for backup archives.

Each archive is paired with a sidecar file holding its SHA-256 digest in the
``sha256sum`` format::

    <hex digest>  <archive filename>

The sidecar references the archive by file name only, so the pair stays
valid when both files are moved together, and ``sha256sum -c`` can check it.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from q_config_backup.backup.errors import (
    DigestComputeError,
    SidecarInvalidError,
    SidecarMissingError,
    SidecarWriteError,
)

logger = logging.getLogger(__name__)

DIGEST_ALGORITHM = "sha256"
SIDECAR_SUFFIX = f".{DIGEST_ALGORITHM}"
CHUNK_SIZE = 8192

_SIDECAR_LINE = re.compile(r"^(?P<digest>[0-9a-fA-F]{64}) [ *](?P<filename>.+)$")


@dataclass(frozen=True)
class Sidecar:
    """Parsed contents of a digest sidecar."""

    algorithm: str
    digest: str
    filename: str

    def to_line(self) -> str:
        """Render the sidecar in sha256sum format."""
        return f"{self.digest}  {self.filename}\n"


@dataclass(frozen=True)
class VerificationResult:
    """Verdict of checking an archive against its sidecar."""

    valid: bool
    archive: Path
    expected: str
    actual: str
    reason: str | None = None


def sidecar_path_for(archive_path: Path) -> Path:
    """Return the sidecar path belonging to an archive."""
    archive_path = Path(archive_path)
    return archive_path.with_name(archive_path.name + SIDECAR_SUFFIX)


def compute_digest(path: Path) -> str:
    """
    Compute the SHA-256 digest of a file.

    Args:
        path: File to hash.

    Returns:
        Lowercase hex digest.

    Raises:
        DigestComputeError: If the file cannot be read.
    """
    hasher = hashlib.new(DIGEST_ALGORITHM)
    try:
        with open(path, "rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                hasher.update(chunk)
    except OSError as e:
        raise DigestComputeError(f"Cannot hash {path}: {e}") from e
    return hasher.hexdigest()


def write_sidecar(
    archive_path: Path,
    digest: str,
    sidecar_path: Path | None = None,
) -> Path:
    """
    Write the digest sidecar for an archive.

    Args:
        archive_path: Archive the digest belongs to. Only its name is recorded.
        digest: Hex digest of the archive.
        sidecar_path: Where to write the sidecar (default: next to the archive).

    Returns:
        Path of the written sidecar.

    Raises:
        SidecarWriteError: If the sidecar cannot be written.
    """
    archive_path = Path(archive_path)
    if sidecar_path is None:
        sidecar_path = sidecar_path_for(archive_path)

    sidecar = Sidecar(
        algorithm=DIGEST_ALGORITHM,
        digest=digest.lower(),
        filename=archive_path.name,
    )
    try:
        Path(sidecar_path).write_text(sidecar.to_line(), encoding="utf-8")
    except OSError as e:
        raise SidecarWriteError(f"Cannot write {sidecar_path}: {e}") from e

    logger.debug("Wrote sidecar %s", sidecar_path)
    return Path(sidecar_path)


def read_sidecar(archive_path: Path) -> Sidecar:
    """
    Read and parse the sidecar of an archive.

    Raises:
        SidecarMissingError: If the sidecar does not exist.
        SidecarInvalidError: If it cannot be read or parsed.
    """
    sidecar_path = sidecar_path_for(archive_path)
    if not sidecar_path.is_file():
        raise SidecarMissingError(f"No checksum file for {archive_path}: {sidecar_path}")

    try:
        content = sidecar_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SidecarInvalidError(f"Cannot read {sidecar_path}: {e}") from e

    lines = [line for line in content.splitlines() if line.strip()]
    if len(lines) != 1:
        raise SidecarInvalidError(f"Expected one checksum line in {sidecar_path}")

    match = _SIDECAR_LINE.match(lines[0].strip())
    if match is None:
        raise SidecarInvalidError(f"Malformed checksum line in {sidecar_path}")

    return Sidecar(
        algorithm=DIGEST_ALGORITHM,
        digest=match.group("digest").lower(),
        filename=match.group("filename"),
    )


def check_digest(archive_path: Path) -> VerificationResult:
    """
    Recompute an archive's digest and compare it with its sidecar.

    Returns a verdict rather than raising on mismatch; missing or unreadable
    sidecars and unreadable archives still raise.
    """
    archive_path = Path(archive_path)
    sidecar = read_sidecar(archive_path)
    actual = compute_digest(archive_path)

    if sidecar.filename != archive_path.name:
        return VerificationResult(
            valid=False,
            archive=archive_path,
            expected=sidecar.digest,
            actual=actual,
            reason=f"checksum file refers to {sidecar.filename!r}",
        )

    if actual != sidecar.digest:
        return VerificationResult(
            valid=False,
            archive=archive_path,
            expected=sidecar.digest,
            actual=actual,
            reason=f"expected {sidecar.digest[:16]}..., got {actual[:16]}...",
        )

    return VerificationResult(
        valid=True,
        archive=archive_path,
        expected=sidecar.digest,
        actual=actual,
    )
