"""Command-line interface for imgbundle-pdf."""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TimeRemainingColumn,
)

from .assembler import PdfStyle
from .collection import ImageBundleError
from .layout import (
    DEFAULT_DPI,
    DEFAULT_MARGIN_MM,
    DEFAULT_PAGE_HEIGHT_MM,
    DEFAULT_PAGE_WIDTH_MM,
    PageGeometry,
)
from .log import init_logging
from .runner import (
    DEFAULT_CONCURRENCY,
    BatchResult,
    SourceResult,
    SourceStatus,
    convert_sources,
)
from .sources import InputSource, discover_sources


def _format_size(num_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgbundle-pdf",
        description=(
            "Convert every sub-folder and .zip archive of images inside"
            " INPUT_DIR into one PDF each, one image per page."
        ),
    )
    parser.add_argument(
        "input_dir",
        type=Path,
        help="Folder containing image folders and/or .zip archives",
    )
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Where to write {name}.pdf files (default: INPUT_DIR)",
    )
    parser.add_argument(
        "-f",
        "--font-path",
        type=Path,
        default=None,
        help="TrueType font to embed as the document font (default: Helvetica)",
    )
    parser.add_argument(
        "--dpi",
        type=float,
        default=DEFAULT_DPI,
        help=f"Pixel density assumed for images (default: {DEFAULT_DPI:g})",
    )
    parser.add_argument(
        "--margin",
        type=float,
        default=DEFAULT_MARGIN_MM,
        help=f"Page margin on each side in mm (default: {DEFAULT_MARGIN_MM:g})",
    )
    parser.add_argument(
        "--page-width",
        type=float,
        default=DEFAULT_PAGE_WIDTH_MM,
        help=f"Page width in mm (default: {DEFAULT_PAGE_WIDTH_MM:g})",
    )
    parser.add_argument(
        "--page-height",
        type=float,
        default=DEFAULT_PAGE_HEIGHT_MM,
        help=f"Page height in mm (default: {DEFAULT_PAGE_HEIGHT_MM:g})",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=DEFAULT_CONCURRENCY,
        help=f"Number of sources converted in parallel (default: {DEFAULT_CONCURRENCY})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show debug logging on stderr",
    )
    return parser


def _geometry_from_args(args: argparse.Namespace) -> PageGeometry:
    try:
        return PageGeometry(
            page_width=args.page_width,
            page_height=args.page_height,
            margin=args.margin,
            dpi=args.dpi,
        )
    except ValueError as exc:
        raise ImageBundleError(f"Invalid page settings: {exc}") from exc


async def _convert_with_progress(
    *,
    console: Console,
    sources: list[InputSource],
    output_dir: Path,
    geometry: PageGeometry,
    style: PdfStyle,
    concurrency: int,
) -> BatchResult:
    """Convert sources with a rich progress bar."""
    progress = Progress(
        SpinnerColumn(),
        "[progress.description]{task.description}",
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    )

    with progress:
        task_id = progress.add_task(
            description="Converting sources",
            total=len(sources),
        )

        def _on_done(result: SourceResult) -> None:
            if result.status is SourceStatus.SKIPPED:
                progress.console.print(f"  [dim]- {result.name}: no images, skipped[/dim]")
            elif result.status is SourceStatus.FAILED:
                progress.console.print(
                    f"  [red]x {result.name}: {escape(str(result.error))}[/red]"
                )
            else:
                progress.console.print(
                    f"  [green]+[/green] {result.name}: {result.page_count} pages"
                )
            progress.advance(task_id=task_id)

        return await convert_sources(
            sources=sources,
            output_dir=output_dir,
            geometry=geometry,
            style=style,
            concurrency=concurrency,
            on_source_done=_on_done,
        )


async def _async_main(args: argparse.Namespace) -> None:
    console = Console()
    start_time = time.monotonic()

    geometry = _geometry_from_args(args)
    input_dir: Path = args.input_dir.resolve()
    output_dir: Path = (args.output_dir or input_dir).resolve()

    with console.status("[bold blue]Scanning input folder..."):
        sources = discover_sources(input_dir)
        style = PdfStyle.load(args.font_path)

    console.print(
        f"Found [bold]{len(sources)}[/bold] source(s) in [bold]{input_dir}[/bold]"
    )

    result = await _convert_with_progress(
        console=console,
        sources=sources,
        output_dir=output_dir,
        geometry=geometry,
        style=style,
        concurrency=args.jobs,
    )

    elapsed = time.monotonic() - start_time

    summary_lines = [
        f"[bold]PDFs written:[/bold] {result.successes}/{len(sources)}",
    ]
    if result.skipped:
        summary_lines.append(f"[bold]Skipped (no images):[/bold] {result.skipped}")
    if result.failures:
        summary_lines.append(
            f"[bold red]Failed:[/bold red] {result.failures}"
        )
        for name in result.failed_sources:
            summary_lines.append(f"  [red]- {name}[/red]")
    summary_lines.append(
        f"[bold]Total size:[/bold] {_format_size(result.total_bytes)}"
    )
    summary_lines.append(f"[bold]Output:[/bold] {output_dir}")

    console.print(Panel(
        "\n".join(summary_lines),
        title=f"[bold green]Done in {elapsed:.1f}s[/bold green]",
        border_style="green" if not result.failures else "yellow",
    ))

    if not result.ok:
        raise ImageBundleError(f"No sources could be converted in {input_dir}")


def main() -> None:
    """Entry point for the ``imgbundle-pdf`` CLI command."""
    console = Console(stderr=True)
    parser = _build_parser()
    args = parser.parse_args()
    init_logging(verbose=args.verbose)

    try:
        asyncio.run(_async_main(args=args))
    except ImageBundleError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        sys.exit(130)
