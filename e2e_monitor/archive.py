"""
Result archiving.

After every run the harness results directory is copied into a timestamped
directory under the archive root; directories older than the retention
window are removed.
"""

import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Union

from e2e_monitor.common.logger import get_logger

logger = get_logger(__name__)

ARCHIVE_NAME_FORMAT = "%Y%m%d-%H%M%S"


def archive_results(
    results_dir: Union[str, Path],
    archive_root: Union[str, Path],
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """
    Copy a results directory into archive_root/<timestamp>.

    Args:
        results_dir: Directory produced by the test run.
        archive_root: Directory holding all archives.
        now: Timestamp used for the archive name.

    Returns:
        Path of the new archive, or None if there was nothing to archive.
    """
    source = Path(results_dir)
    if not source.is_dir():
        logger.warning(f"No results directory to archive: {source}")
        return None

    now = now or datetime.now()
    root = Path(archive_root)
    root.mkdir(parents=True, exist_ok=True)

    destination = root / now.strftime(ARCHIVE_NAME_FORMAT)
    suffix = 1
    while destination.exists():
        destination = root / f"{now.strftime(ARCHIVE_NAME_FORMAT)}-{suffix}"
        suffix += 1

    shutil.copytree(source, destination)
    logger.info(f"Archived results to {destination}")
    return destination


def prune_archives(
    archive_root: Union[str, Path],
    retention_days: int,
    now: Optional[datetime] = None,
) -> List[Path]:
    """
    Delete archive directories older than the retention window.

    Only direct sub-directories are considered; their age is taken from the
    directory mtime. Files in the archive root are left untouched.

    Args:
        archive_root: Directory holding all archives.
        retention_days: Maximum age in days; 0 disables pruning.
        now: Reference time.

    Returns:
        Paths that were removed.
    """
    root = Path(archive_root)
    if retention_days <= 0 or not root.is_dir():
        return []

    now = now or datetime.now()
    cutoff = now - timedelta(days=retention_days)
    removed: List[Path] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or entry.is_symlink():
            continue
        modified = datetime.fromtimestamp(entry.stat().st_mtime, tz=now.tzinfo)
        if modified < cutoff:
            shutil.rmtree(entry)
            removed.append(entry)
            logger.info(f"Pruned archive {entry.name} (modified {modified:%Y-%m-%d %H:%M})")

    if removed:
        logger.info(f"Pruned {len(removed)} archive(s) older than {retention_days} day(s)")
    return removed
