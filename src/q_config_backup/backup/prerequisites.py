"""Startup checks shared by every command."""

from __future__ import annotations

import hashlib
import importlib.util
import logging
import os
from pathlib import Path

from q_config_backup.backup.errors import PrerequisiteMissingError
from q_config_backup.backup.integrity import DIGEST_ALGORITHM
from q_config_backup.config.settings import Settings

logger = logging.getLogger(__name__)


def find_missing_prerequisites(settings: Settings, writable: bool = True) -> list[str]:
    """
    Collect every unmet prerequisite.

    Args:
        settings: Resolved settings.
        writable: Also require a creatable, writable backup directory.

    Returns:
        Human-readable problems, empty when everything is in place.
    """
    problems = []

    if importlib.util.find_spec("zlib") is None:
        problems.append("gzip compression support (zlib) is not available")

    if DIGEST_ALGORITHM not in hashlib.algorithms_available:
        problems.append(f"{DIGEST_ALGORITHM} digest support is not available")

    if writable:
        backup_dir = Path(settings.backup_dir)
        if not backup_dir.is_dir():
            try:
                backup_dir.mkdir(parents=True, exist_ok=True)
                logger.info("Backup directory created: %s", backup_dir)
            except OSError as e:
                problems.append(f"Cannot create backup directory {backup_dir}: {e}")
        if backup_dir.is_dir() and not os.access(backup_dir, os.W_OK | os.X_OK):
            problems.append(f"No write permission in backup directory: {backup_dir}")

    return problems


def check_prerequisites(settings: Settings, writable: bool = True) -> None:
    """
    Verify prerequisites, reporting all problems at once.

    Raises:
        PrerequisiteMissingError: If anything is missing.
    """
    problems = find_missing_prerequisites(settings, writable=writable)
    if problems:
        raise PrerequisiteMissingError(problems)
