"""Put the listing into the input tree for the duration of a build."""
from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Iterator

from compile_cache.tools.manifest_io import save_manifest

logger = logging.getLogger(__name__)


def stage_listing(fingerprints: dict[str, str], input_dir: Path, listing_name: str = "listing") -> Path:
    """Write the listing to input_dir/listing_name and return its path."""
    listing_path = Path(input_dir) / listing_name
    save_manifest(fingerprints, listing_path, listing_name)
    logger.debug(f"Staged listing with {len(fingerprints)} entries at {listing_path}")
    return listing_path


def unstage_listing(input_dir: Path, listing_name: str = "listing") -> None:
    """Remove input_dir/listing_name if present."""
    listing_path = Path(input_dir) / listing_name
    listing_path.unlink(missing_ok=True)
    logger.debug(f"Removed staged listing {listing_path}")


@contextmanager
def staged_listing(fingerprints: dict[str, str], input_dir: Path, listing_name: str = "listing") -> Iterator[Path]:
    """
    Stage the listing, yield its path, and remove it on every exit path.

    Example:
        with staged_listing(current, input_dir):
            builder.run(request)
    """
    try:
        yield stage_listing(fingerprints, input_dir, listing_name)
    finally:
        unstage_listing(input_dir, listing_name)
