"""Walk an input tree and fingerprint every regular file."""
from concurrent.futures import ThreadPoolExecutor
import hashlib
import logging
import os
import stat
from pathlib import Path
from typing import Callable, Optional

from compile_cache.models.errors import ConfigError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def fingerprint_directory(
    root: Path,
    listing_name: str = "listing",
    algorithm: str = "md5",
    max_workers: int = 1,
    progress_callback: Optional[Callable[[str], None]] = None
) -> dict[str, str]:
    """
    Hash every regular file under root.

    Symlinks, directories and special files are skipped. The listing file
    itself is never part of the result.

    Returns:
        dict mapping "/"-prefixed posix path (relative to root) to hex digest,
        sorted by path

    Raises:
        ConfigError: root is not a directory
        OSError: a file could not be read
    """
    root = Path(root)
    if not root.is_dir():
        raise ConfigError(f"Input directory not found: {root}")

    files = list_regular_files(root)
    listing_key = f"/{listing_name}"
    files = [(key, path) for key, path in files if key != listing_key]
    logger.debug(f"Fingerprinting {len(files)} files under {root} ({algorithm})")

    def _hash(item: tuple[str, Path]) -> tuple[str, str]:
        key, path = item
        digest = compute_digest(path, algorithm)
        if progress_callback:
            progress_callback(key)
        return key, digest

    if max_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            hashed = list(pool.map(_hash, files))
    else:
        hashed = [_hash(item) for item in files]

    return dict(sorted(hashed))


def list_regular_files(root: Path) -> list[tuple[str, Path]]:
    """Return (listing key, absolute path) for each regular file under root, sorted."""
    results = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error, followlinks=False):
        dirnames.sort()
        for name in filenames:
            path = Path(dirpath) / name
            mode = path.lstat().st_mode
            if not stat.S_ISREG(mode):
                continue
            rel_path = path.relative_to(root).as_posix()
            results.append((f"/{rel_path}", path))
    results.sort()
    return results


def _raise_walk_error(error: OSError) -> None:
    # os.walk skips unlistable directories unless told otherwise
    raise error


def compute_digest(file_path: Path, algorithm: str = "md5") -> str:
    """Compute the hex digest of a file's full content."""
    try:
        digest = hashlib.new(algorithm)
    except ValueError as e:
        raise ConfigError(f"Unsupported hash algorithm: {algorithm}") from e
    with open(file_path, "rb") as f:
        # Read in chunks to handle large files
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
