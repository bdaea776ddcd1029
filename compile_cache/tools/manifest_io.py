"""Listing I/O: encode, decode, and read the listing out of an output archive."""
import logging
import os
from pathlib import Path
import zipfile

from pydantic import ValidationError

from compile_cache.models.errors import ArchiveOpenError, FormatError, ManifestNotFoundError
from compile_cache.models.manifest import ListingEntry, Manifest

logger = logging.getLogger(__name__)


def encode_manifest(fingerprints: dict[str, str], listing_name: str = "listing") -> bytes:
    """
    Serialize fingerprints as `<path> <digest>` lines, sorted by path.

    The listing's own entry is skipped.

    Raises:
        FormatError: a path or digest cannot be written as a listing line
    """
    try:
        manifest = Manifest.from_fingerprints(fingerprints, exclude=f"/{listing_name}")
    except ValidationError as e:
        raise FormatError(f"Cannot encode listing: {e}") from e

    lines = [f"{entry.path} {entry.digest}\n" for entry in manifest.entries]
    return "".join(lines).encode("utf-8")


def decode_manifest(data: bytes) -> dict[str, str]:
    """
    Parse listing bytes into a path -> digest mapping.

    Each line is split on its last space, so paths containing spaces are
    kept intact. Any malformed line aborts the whole decode.

    Raises:
        FormatError: undecodable bytes, a line without a digest, a bad digest,
            or a duplicated path
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Listing is not valid UTF-8: {e}") from e

    fingerprints: dict[str, str] = {}
    for line_number, line in enumerate(text.split("\n"), start=1):
        line = line.removesuffix("\r")
        if not line.strip():
            continue

        path, sep, digest = line.rpartition(" ")
        if not sep or not path:
            raise FormatError(f"missing digest field: {line!r}", line_number)

        try:
            entry = ListingEntry(path=path, digest=digest)
        except ValidationError as e:
            raise FormatError(f"invalid entry {line!r}: {e.errors()[0]['msg']}", line_number) from e

        if entry.path in fingerprints:
            raise FormatError(f"duplicate path: {entry.path}", line_number)
        fingerprints[entry.path] = entry.digest

    return fingerprints


def read_archive_listing(archive_path: Path, listing_name: str = "listing") -> dict[str, str]:
    """
    Read and decode the listing entry stored in a zip archive.

    Raises:
        ArchiveOpenError: the archive cannot be opened as a zip file
        ManifestNotFoundError: the archive has no entry named listing_name
        FormatError: the listing is malformed
    """
    try:
        archive = zipfile.ZipFile(archive_path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveOpenError(f"Failed to open: {archive_path}: {e}", archive_path) from e

    with archive:
        try:
            info = archive.getinfo(listing_name)
        except KeyError as e:
            raise ManifestNotFoundError(
                f"Unable to find {listing_name!r} in {archive_path}", archive_path
            ) from e

        try:
            data = archive.read(info)
        except (zipfile.BadZipFile, OSError, RuntimeError) as e:
            raise ArchiveOpenError(
                f"Failed to read {listing_name!r} from {archive_path}: {e}", archive_path
            ) from e

    logger.debug(f"Read {len(data)} bytes of listing from {archive_path}")
    return decode_manifest(data)


def load_manifest(manifest_path: Path) -> dict[str, str]:
    """Load a listing file from disk."""
    return decode_manifest(Path(manifest_path).read_bytes())


def save_manifest(fingerprints: dict[str, str], manifest_path: Path, listing_name: str = "listing") -> None:
    """Write a listing file, truncating any existing one, readable by the owner only."""
    data = encode_manifest(fingerprints, listing_name)
    fd = os.open(manifest_path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
