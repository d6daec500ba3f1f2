"""
Archive packaging for configuration backups.

Builds gzip-compressed tar archives whose top-level entry is the source
directory's absolute path without the leading ``/``, so extracting at ``/``
recreates the original path.
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from dataclasses import dataclass
from pathlib import Path

from q_config_backup.backup.errors import (
    EmptyArchiveError,
    InsufficientSpaceError,
    PackagingFailedError,
    SourceNotFoundError,
)

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"


@dataclass
class ArchiveInfo:
    """Details of a freshly built archive."""

    path: Path
    size_bytes: int
    entry_count: int


def archive_root_name(source: Path) -> str:
    """
    Return the member name used for the source directory inside an archive.

    The name is the absolute source path without its anchor, e.g. ``etc`` for
    ``/etc`` or ``home/alice/.config`` for ``/home/alice/.config``, so that
    extracting at ``/`` puts files back where they came from.
    """
    resolved = Path(source).resolve()
    name = resolved.relative_to(resolved.anchor).as_posix()
    return "" if name == "." else name


def estimate_tree_size(source: Path) -> int:
    """Sum the apparent size of every regular file under ``source``."""
    total = 0
    for root, _dirs, files in os.walk(source):
        for name in files:
            file_path = os.path.join(root, name)
            try:
                if not os.path.islink(file_path):
                    total += os.path.getsize(file_path)
            except OSError as e:
                logger.debug("Skipping %s in size estimate: %s", file_path, e)
    return total


def check_capacity(source: Path, destination_dir: Path) -> None:
    """
    Fail fast if the destination cannot hold an uncompressed copy of the source.

    Raises:
        InsufficientSpaceError: If free space is smaller than the source tree.
    """
    required = estimate_tree_size(source)
    available = shutil.disk_usage(destination_dir).free
    logger.debug("Space check: required=%d available=%d", required, available)
    if required > available:
        raise InsufficientSpaceError(required, available)


def count_entries(archive_path: Path) -> int:
    """Count the members of a gzip tar archive."""
    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            return len(tar.getmembers())
    except (tarfile.TarError, OSError) as e:
        raise PackagingFailedError(f"Cannot read archive {archive_path}: {e}") from e


def _exclusion_filter(source: Path, arcname: str, exclude: list[Path]):
    """Build a tarfile filter dropping members that live under ``exclude``."""
    prefixes = []
    resolved_source = source.resolve()
    for path in exclude:
        try:
            relative = Path(path).resolve().relative_to(resolved_source)
        except ValueError:
            continue
        prefixes.append(f"{arcname}/{relative.as_posix()}")

    def _filter(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo | None:
        for prefix in prefixes:
            if tarinfo.name == prefix or tarinfo.name.startswith(prefix + "/"):
                return None
        return tarinfo

    return _filter


def build_archive(
    source: Path,
    destination: Path,
    exclude: list[Path] | None = None,
) -> ArchiveInfo:
    """
    Package a directory tree into a gzip tar archive.

    Args:
        source: Directory to archive.
        destination: Archive file to create. Its parent must exist.
        exclude: Paths inside ``source`` to leave out, such as a backup
            directory that lives inside the tree being backed up.

    Returns:
        ArchiveInfo with path, size and entry count.

    Raises:
        SourceNotFoundError: If ``source`` is not an existing directory.
        InsufficientSpaceError: If the destination lacks free space.
        PackagingFailedError: If writing the archive fails.
        EmptyArchiveError: If the archive ends up missing or empty.
    """
    source = Path(source)
    destination = Path(destination)

    if not source.is_dir():
        raise SourceNotFoundError(f"Source directory does not exist: {source}")

    check_capacity(source, destination.parent)

    arcname = archive_root_name(source)
    if not arcname:
        raise SourceNotFoundError(f"Cannot back up the filesystem root: {source}")

    logger.info("Creating archive %s from %s", destination, source)
    try:
        with tarfile.open(destination, "w:gz") as tar:
            tar.add(
                source,
                arcname=arcname,
                filter=_exclusion_filter(source, arcname, exclude or []),
            )
    except (tarfile.TarError, OSError) as e:
        destination.unlink(missing_ok=True)
        raise PackagingFailedError(f"Cannot create {destination}: {e}") from e

    if not destination.is_file() or destination.stat().st_size == 0:
        destination.unlink(missing_ok=True)
        raise EmptyArchiveError(f"Archive is empty or was not created: {destination}")

    try:
        entry_count = count_entries(destination)
    except PackagingFailedError:
        destination.unlink(missing_ok=True)
        raise

    return ArchiveInfo(
        path=destination,
        size_bytes=destination.stat().st_size,
        entry_count=entry_count,
    )
