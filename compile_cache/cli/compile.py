"""CLI to rebuild an output archive in a container when its inputs changed."""
import argparse
import logging
import sys
from pathlib import Path
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from dotenv import load_dotenv
from tqdm import tqdm

from compile_cache.models.build import BuildRequest
from compile_cache.models.errors import BuildFailedError, CompileCacheError
from compile_cache.models.settings import CacheSettings
from compile_cache.tools.cache_decision import decide
from compile_cache.tools.compile import compile_if_changed
from compile_cache.tools.fs_scan import list_regular_files


console = Console()

EXIT_FRESH = 0
EXIT_ERROR = 1
EXIT_NEEDS_BUILD = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compile an input directory in a container, skipping the build when nothing changed"
    )
    parser.add_argument("--filename", required=True, help="Output archive name (e.g. out.zip)")
    parser.add_argument("--input", required=True, type=Path, help="Source directory")
    parser.add_argument("--output", required=True, type=Path, help="Output directory (created if missing)")
    parser.add_argument("--image", required=True, help="Container image reference")
    parser.add_argument("--script", required=True, help="Build script, relative to --input")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only report whether a build is needed (exit 0 fresh, 2 needs build)"
    )
    parser.add_argument("--timeout", type=float, help="Seconds to wait for the container to finish")
    parser.add_argument("--workers", type=int, help="Threads used to hash input files")
    parser.add_argument(
        "--rebuild-on-unusable-archive",
        action="store_true",
        default=None,
        help="Rebuild instead of failing when the existing archive is corrupt or has no listing"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (includes container output)"
    )
    return parser


def configure_logging(verbose: bool, debug: bool) -> None:
    if debug:
        log_level = logging.DEBUG
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    elif verbose:
        log_level = logging.INFO
        log_format = "%(asctime)s - %(levelname)s - %(message)s"
    else:
        log_level = logging.WARNING
        log_format = "%(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


def main(argv=None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.debug)

    try:
        settings = CacheSettings.from_env(
            wait_timeout=args.timeout,
            hash_workers=args.workers,
            rebuild_on_unusable_archive=args.rebuild_on_unusable_archive,
        )
        request = BuildRequest(
            filename=args.filename,
            input_dir=args.input,
            output_dir=args.output,
            image=args.image,
            script=args.script,
        )
    except (CompileCacheError, ValueError) as e:
        console.print(f"[red]✗ Invalid configuration: {escape(str(e))}[/red]")
        return EXIT_ERROR

    pbar = tqdm(desc="Fingerprinting", unit="file", disable=True)

    def progress_callback(path):
        pbar.set_postfix_str(path[-40:])
        pbar.update(1)

    try:
        total_files = _count_input_files(args.input, settings.listing_name)
        pbar = tqdm(total=total_files, desc="Fingerprinting", unit="file", disable=total_files == 0)

        if args.check:
            request.validate_paths()
            decision = decide(
                request.input_dir,
                request.output_path,
                settings.listing_name,
                algorithm=settings.hash_algorithm,
                max_workers=settings.hash_workers,
                rebuild_on_unusable_archive=settings.rebuild_on_unusable_archive,
                progress_callback=progress_callback,
            )
            pbar.close()
            _show_summary(decision, None)
            return EXIT_NEEDS_BUILD if decision.needs_build else EXIT_FRESH

        outcome = compile_if_changed(request, settings=settings, progress_callback=progress_callback)
        pbar.close()
    except BuildFailedError as e:
        pbar.close()
        console.print(f"\n[red]✗ {escape(str(e))}[/red]")
        if e.logs:
            console.print(e.logs.decode("utf-8", errors="replace"), markup=False, highlight=False)
        return EXIT_ERROR
    except (CompileCacheError, OSError) as e:
        pbar.close()
        console.print(f"\n[red]Error: {escape(str(e))}[/red]")
        return EXIT_ERROR

    _show_summary(outcome.decision, outcome.result)
    if outcome.rebuilt:
        console.print(f"\n✓ [green]Built[/green] {escape(str(request.output_path))}")
    else:
        console.print(f"\n✓ [green]Up to date[/green] {escape(str(request.output_path))}")
    return EXIT_FRESH


def _count_input_files(input_dir: Path, listing_name: str) -> int:
    """Number of files that will be fingerprinted (for the progress bar)."""
    if not input_dir.is_dir():
        return 0
    listing_key = f"/{listing_name}"
    return sum(1 for key, _ in list_regular_files(input_dir) if key != listing_key)


def _show_summary(decision, result) -> None:
    """Display the cache decision (and build result) as a table."""
    table = Table(title="Compile Cache")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta", justify="right")

    table.add_row("State", decision.state)
    table.add_row("Reason", escape(decision.reason))
    table.add_row("Files", str(len(decision.current)))
    if decision.diff is not None:
        table.add_row("Added", str(len(decision.diff.added)))
        table.add_row("Removed", str(len(decision.diff.removed)))
        table.add_row("Changed", str(len(decision.diff.changed)))
    if result is not None:
        table.add_row("Container", result.container_id[:12])
        table.add_row("Exit code", str(result.exit_code))

    console.print(table)


if __name__ == "__main__":
    sys.exit(main())
