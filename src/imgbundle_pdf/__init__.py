"""imgbundle-pdf: Turn folders and zip archives of images into paginated PDFs."""

from __future__ import annotations

from pathlib import Path

from .assembler import (
    Document,
    DocumentPage,
    FontLoadError,
    ImageToElementConversionError,
    PdfStyle,
    PersistError,
    RenderError,
    assemble_pdf,
    build_document,
    render_document,
    write_pdf,
)
from .collection import (
    EmptyCollectionError,
    ImageBundleError,
    ImageCollection,
    ImageRecord,
    NotAnImageError,
    build_collection,
)
from .layout import PageGeometry, PageLayoutDecision, Rotation, plan_page_layout
from .runner import (
    DEFAULT_CONCURRENCY,
    BatchResult,
    SourceResult,
    SourceStatus,
    convert_source,
    convert_sources,
)
from .sources import DirectorySource, SourceError, ZipSource, discover_sources

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DEFAULT_CONCURRENCY",
    "BatchResult",
    "DirectorySource",
    "Document",
    "DocumentPage",
    "EmptyCollectionError",
    "FontLoadError",
    "ImageBundleError",
    "ImageCollection",
    "ImageRecord",
    "ImageToElementConversionError",
    "NotAnImageError",
    "PageGeometry",
    "PageLayoutDecision",
    "PdfStyle",
    "PersistError",
    "RenderError",
    "Rotation",
    "SourceError",
    "SourceResult",
    "SourceStatus",
    "ZipSource",
    "assemble_pdf",
    "build_collection",
    "build_document",
    "convert_folder",
    "convert_source",
    "convert_sources",
    "discover_sources",
    "plan_page_layout",
    "render_document",
    "write_pdf",
]


async def convert_folder(
    input_dir: Path | str,
    output_dir: Path | str | None = None,
    *,
    font_path: Path | str | None = None,
    geometry: PageGeometry | None = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> BatchResult:
    """Convert every sub-folder and zip archive of *input_dir* into a PDF.

    This is the high-level convenience function that combines source
    discovery, font loading and batch conversion into a single call.

    Args:
        input_dir: Folder whose direct sub-folders and ``.zip`` files are
            converted, one PDF each.
        output_dir: Where ``{name}.pdf`` files are written. Defaults to
            *input_dir*.
        font_path: Optional TrueType font used for the documents.
        geometry: Page size, margin and DPI. Defaults to A4, 10mm, 300 DPI.
        concurrency: Maximum number of sources converted at once.

    Returns:
        A :class:`BatchResult`; check :attr:`BatchResult.ok` for overall
        success.

    Raises:
        SourceError: If *input_dir* is not a readable directory.
        FontLoadError: If *font_path* cannot be loaded.

    Example::

        import asyncio
        from imgbundle_pdf import convert_folder

        result = asyncio.run(convert_folder("scans"))
        print(f"Converted {result.successes} source(s)")
    """
    input_dir = Path(input_dir)
    sources = discover_sources(input_dir)
    style = PdfStyle.load(font_path)

    return await convert_sources(
        sources=sources,
        output_dir=Path(output_dir) if output_dir else input_dir,
        geometry=geometry,
        style=style,
        concurrency=concurrency,
    )
