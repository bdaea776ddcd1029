"""Decide whether an input tree must be rebuilt (absent / stale / fresh)."""
import logging
from pathlib import Path
from typing import Callable, Optional

from compile_cache.models.errors import ArchiveError
from compile_cache.models.manifest import CacheDecision, FingerprintDiff
from compile_cache.tools.fs_scan import fingerprint_directory
from compile_cache.tools.manifest_io import read_archive_listing

logger = logging.getLogger(__name__)


def diff_fingerprints(current: dict[str, str], previous: dict[str, str]) -> FingerprintDiff:
    """Compare two fingerprint maps path by path."""
    added = sorted(set(current) - set(previous))
    removed = sorted(set(previous) - set(current))
    changed = sorted(
        path for path in set(current) & set(previous)
        if current[path] != previous[path]
    )
    return FingerprintDiff(added=added, removed=removed, changed=changed)


def decide(
    input_dir: Path,
    archive_path: Path,
    listing_name: str = "listing",
    *,
    algorithm: str = "md5",
    max_workers: int = 1,
    rebuild_on_unusable_archive: bool = False,
    progress_callback: Optional[Callable[[str], None]] = None
) -> CacheDecision:
    """
    Compare the current fingerprints of input_dir with the listing inside archive_path.

    Args:
        input_dir: Source tree to fingerprint
        archive_path: Previously produced output archive (may not exist)
        listing_name: Name of the listing entry, both in input_dir and in the archive
        algorithm: hashlib algorithm name
        max_workers: Threads used to hash files
        rebuild_on_unusable_archive: Treat a corrupt archive or a missing
            listing entry as "absent" instead of raising
        progress_callback: Optional callback(path) per hashed file

    Returns:
        CacheDecision with state "absent", "stale" or "fresh"

    Raises:
        ArchiveOpenError / ManifestNotFoundError: archive unusable (unless
            rebuild_on_unusable_archive)
        FormatError: the archived listing is malformed
        OSError: input files could not be read
    """
    current = fingerprint_directory(
        input_dir,
        listing_name=listing_name,
        algorithm=algorithm,
        max_workers=max_workers,
        progress_callback=progress_callback
    )
    logger.debug(f"Fingerprinted {len(current)} files in {input_dir}")

    archive_path = Path(archive_path)
    if not archive_path.is_file():
        logger.info(f"No output archive at {archive_path}, build required")
        return CacheDecision(state="absent", current=current, reason="no previous archive")

    logger.debug(f"Output archive exists at {archive_path}, checking listing")
    try:
        previous = read_archive_listing(archive_path, listing_name)
    except ArchiveError as e:
        if not rebuild_on_unusable_archive:
            raise
        logger.warning(f"Ignoring unusable archive, rebuilding: {e}")
        return CacheDecision(state="absent", current=current, reason=str(e))

    diff = diff_fingerprints(current, previous)
    if diff.is_empty:
        logger.info(f"Listing matches {archive_path}, no build needed")
        return CacheDecision(
            state="fresh", current=current, previous=previous, diff=diff,
            reason="listing matches input"
        )

    reason = (
        f"{len(diff.added)} added, {len(diff.removed)} removed, "
        f"{len(diff.changed)} changed"
    )
    logger.info(f"Input changed since last build ({reason}), rebuild required")
    return CacheDecision(state="stale", current=current, previous=previous, diff=diff, reason=reason)
