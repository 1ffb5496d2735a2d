"""Per-source conversion and bounded parallel batch processing."""

from __future__ import annotations

import asyncio
import enum
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from .assembler import PdfStyle, PersistError, assemble_pdf, write_pdf
from .collection import ImageBundleError, build_collection
from .layout import PageGeometry
from .sources import InputSource

DEFAULT_CONCURRENCY = 4


class SourceStatus(enum.Enum):
    CONVERTED = "converted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SourceResult:
    """Outcome of converting one source."""

    name: str
    status: SourceStatus
    output_path: Path
    page_count: int = 0
    pdf_bytes: int = 0
    error: ImageBundleError | None = None


@dataclass
class BatchResult:
    """Result of converting a set of sources."""

    results: list[SourceResult] = field(default_factory=list)

    @property
    def successes(self) -> int:
        return sum(1 for r in self.results if r.status is SourceStatus.CONVERTED)

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if r.status is SourceStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status is SourceStatus.SKIPPED)

    @property
    def total_bytes(self) -> int:
        return sum(r.pdf_bytes for r in self.results)

    @property
    def failed_sources(self) -> list[str]:
        return [r.name for r in self.results if r.status is SourceStatus.FAILED]

    @property
    def ok(self) -> bool:
        """True if at least one source was fully converted."""
        return self.successes > 0


def _resolve_output_path(output_dir: Path, name: str) -> Path:
    return output_dir / f"{name}.pdf"


def convert_source(
    source: InputSource,
    output_dir: Path,
    *,
    geometry: PageGeometry | None = None,
    style: PdfStyle | None = None,
) -> SourceResult:
    """Read, validate, assemble and write one source.

    Errors are captured in the returned :class:`SourceResult` so that one
    bad source never stops the others.
    """
    output_path = _resolve_output_path(output_dir=output_dir, name=source.name)

    try:
        entries = source.entries()
        if not entries:
            logger.info("No images in {}, skipping", source.path)
            return SourceResult(
                name=source.name,
                status=SourceStatus.SKIPPED,
                output_path=output_path,
            )

        collection = build_collection(
            blobs=[data for _, data in entries],
            name=source.name,
        )
        pdf = assemble_pdf(collection=collection, geometry=geometry, style=style)
        size = write_pdf(pdf_bytes=pdf, output_path=output_path)
    except ImageBundleError as exc:
        logger.warning("Failed to convert {}: {}", source.path, exc)
        return SourceResult(
            name=source.name,
            status=SourceStatus.FAILED,
            output_path=output_path,
            error=exc,
        )

    logger.info(
        "Wrote {} ({} pages, {} bytes)", output_path, len(collection), size
    )
    return SourceResult(
        name=source.name,
        status=SourceStatus.CONVERTED,
        output_path=output_path,
        page_count=len(collection),
        pdf_bytes=size,
    )


async def _convert_one(
    source: InputSource,
    output_dir: Path,
    semaphore: asyncio.Semaphore,
    *,
    geometry: PageGeometry | None,
    style: PdfStyle | None,
    on_source_done: Callable[[SourceResult], None] | None,
) -> SourceResult:
    async with semaphore:
        result = await asyncio.to_thread(
            convert_source,
            source,
            output_dir,
            geometry=geometry,
            style=style,
        )
    if on_source_done is not None:
        on_source_done(result)
    return result


async def _convert_group(
    group: list[tuple[int, InputSource]],
    output_dir: Path,
    semaphore: asyncio.Semaphore,
    *,
    geometry: PageGeometry | None,
    style: PdfStyle | None,
    on_source_done: Callable[[SourceResult], None] | None,
) -> list[tuple[int, SourceResult]]:
    # Sources sharing an output path run in input order; the last one wins.
    converted = []
    for position, source in group:
        result = await _convert_one(
            source=source,
            output_dir=output_dir,
            semaphore=semaphore,
            geometry=geometry,
            style=style,
            on_source_done=on_source_done,
        )
        converted.append((position, result))
    return converted


async def convert_sources(
    sources: Sequence[InputSource],
    output_dir: Path,
    *,
    geometry: PageGeometry | None = None,
    style: PdfStyle | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    on_source_done: Callable[[SourceResult], None] | None = None,
) -> BatchResult:
    """Convert every source to a PDF in parallel worker threads.

    Sources that resolve to the same output file (a folder ``foo`` next to
    ``foo.zip``) are converted one after another in the given order, so the
    last of them deterministically owns ``foo.pdf``.

    Args:
        sources: Sources to convert; results keep this order.
        output_dir: Directory receiving ``{name}.pdf`` files.
        geometry: Page size, margin and DPI shared by all documents.
        style: Font resource shared by all documents.
        concurrency: Maximum number of sources converted at once.
        on_source_done: Called with each result as it completes.

    Returns:
        A :class:`BatchResult` summarizing the outcome.
    """
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PersistError(path=output_dir, cause=exc) from exc
    semaphore = asyncio.Semaphore(max(1, concurrency))

    groups: dict[Path, list[tuple[int, InputSource]]] = {}
    for position, source in enumerate(sources):
        output_path = _resolve_output_path(output_dir=output_dir, name=source.name)
        groups.setdefault(output_path, []).append((position, source))

    for output_path, group in groups.items():
        if len(group) > 1:
            logger.warning(
                "{} sources write {}; keeping the output of {}",
                len(group),
                output_path,
                group[-1][1].path,
            )

    converted = await asyncio.gather(*(
        _convert_group(
            group=group,
            output_dir=output_dir,
            semaphore=semaphore,
            geometry=geometry,
            style=style,
            on_source_done=on_source_done,
        )
        for group in groups.values()
    ))

    by_position = dict(item for group in converted for item in group)
    return BatchResult(results=[by_position[i] for i in range(len(sources))])
