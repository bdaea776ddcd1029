"""CLI to print the listing stored in an output archive, or diff it against a directory."""
import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from compile_cache.models.errors import CompileCacheError
from compile_cache.tools.cache_decision import diff_fingerprints
from compile_cache.tools.fs_scan import fingerprint_directory
from compile_cache.tools.manifest_io import read_archive_listing


console = Console()


def main(argv=None) -> int:
    """Show an archive's listing and, with --compare, what changed since."""
    parser = argparse.ArgumentParser(description="Inspect the listing inside an output archive")
    parser.add_argument("archive", type=Path, help="Output archive (zip)")
    parser.add_argument("--listing", default="listing", help="Listing entry name")
    parser.add_argument("--compare", type=Path, help="Input directory to diff against the listing")
    parser.add_argument("--algorithm", default="md5", help="Hash algorithm used for --compare")
    args = parser.parse_args(argv)

    try:
        listing = read_archive_listing(args.archive, args.listing)
    except (CompileCacheError, OSError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    if args.compare is None:
        table = Table(title=escape(f"{args.archive} :: {args.listing}"))
        table.add_column("Path", style="cyan")
        table.add_column("Digest", style="magenta")
        for path, digest in sorted(listing.items()):
            table.add_row(escape(path), digest)
        console.print(table)
        console.print(f"{len(listing)} entries")
        return 0

    try:
        current = fingerprint_directory(args.compare, args.listing, args.algorithm)
    except (CompileCacheError, OSError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    diff = diff_fingerprints(current, listing)
    if diff.is_empty:
        console.print(f"✓ [green]{escape(str(args.compare))} matches the listing[/green]")
        return 0

    markers = [("[ADDED]", diff.added), ("[REMOVED]", diff.removed), ("[CHANGED]", diff.changed)]
    for marker, paths in markers:
        for path in paths:
            console.print(f"{marker:10} {path}", markup=False)
    print()
    print(f"Added:   {len(diff.added)}")
    print(f"Removed: {len(diff.removed)}")
    print(f"Changed: {len(diff.changed)}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
