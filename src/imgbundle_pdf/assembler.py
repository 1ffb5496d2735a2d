"""Assemble a validated image collection into a single PDF document."""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path

from PIL import Image
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from .collection import ImageBundleError, ImageCollection, ImageRecord
from .layout import PageGeometry, PageLayoutDecision, plan_page_layout, px_to_mm

_DEFAULT_FONT = "Helvetica"
_DEFAULT_FONT_SIZE = 10.0


class ImageToElementConversionError(ImageBundleError):
    """Raised when an image cannot be decoded for placement on a page."""

    def __init__(self, index: int, cause: Exception | None = None) -> None:
        self.index = index
        self.cause = cause
        message = f"Failed to convert image No.{index + 1} into a page element"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RenderError(ImageBundleError):
    """Raised when the PDF byte stream cannot be produced."""


class PersistError(ImageBundleError):
    """Raised when a rendered PDF cannot be written to its target path."""

    def __init__(self, path: Path, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        message = f"Failed to write PDF to {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class FontLoadError(ImageBundleError):
    """Raised when a TrueType font file cannot be loaded."""


@dataclass(frozen=True)
class PdfStyle:
    """Font resource applied uniformly to every page of a document."""

    font_name: str = _DEFAULT_FONT
    font_size: float = _DEFAULT_FONT_SIZE

    @classmethod
    def load(cls, font_path: Path | str | None = None) -> PdfStyle:
        """Load the style, registering *font_path* with reportlab if given.

        Raises:
            FontLoadError: If the font file is missing or not a TrueType font.
        """
        if font_path is None:
            return cls()

        path = Path(font_path)
        font_name = path.stem
        try:
            pdfmetrics.registerFont(TTFont(font_name, str(path)))
        except (TTFError, OSError) as exc:
            raise FontLoadError(f"Could not load font {path}: {exc}") from exc
        return cls(font_name=font_name)


@dataclass(frozen=True)
class DocumentPage:
    record: ImageRecord
    layout: PageLayoutDecision
    page_break_after: bool


@dataclass(frozen=True)
class Document:
    """Ordered page plan plus document-level metadata."""

    title: str
    geometry: PageGeometry
    pages: tuple[DocumentPage, ...]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def page_breaks(self) -> int:
        return sum(1 for page in self.pages if page.page_break_after)


def build_document(
    collection: ImageCollection,
    geometry: PageGeometry | None = None,
) -> Document:
    """Plan one page per image, with page breaks between (not after) pages."""
    geometry = geometry or PageGeometry()
    last = len(collection.records) - 1
    pages = tuple(
        DocumentPage(
            record=record,
            layout=plan_page_layout(
                width_px=record.width,
                height_px=record.height,
                geometry=geometry,
            ),
            page_break_after=position < last,
        )
        for position, record in enumerate(collection.records)
    )
    return Document(title=collection.name, geometry=geometry, pages=pages)


def _to_image_reader(record: ImageRecord) -> ImageReader:
    """Fully decode the record's pixels into something reportlab can draw."""
    try:
        img = Image.open(io.BytesIO(record.data))
        img.load()
        if img.mode not in ("RGB", "RGBA", "L"):
            has_alpha = "transparency" in img.info or img.mode in ("LA", "PA")
            img = img.convert("RGBA" if has_alpha else "RGB")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageToElementConversionError(index=record.index, cause=exc) from exc
    return ImageReader(img)


def _draw_page(
    pdf: canvas.Canvas,
    page: DocumentPage,
    reader: ImageReader,
    geometry: PageGeometry,
) -> None:
    layout = page.layout
    draw_w = px_to_mm(page.record.width, layout.dpi) * layout.scale * mm
    draw_h = px_to_mm(page.record.height, layout.dpi) * layout.scale * mm

    center_x = (geometry.margin + geometry.usable_width / 2) * mm
    center_y = (geometry.margin + geometry.usable_height / 2) * mm

    pdf.saveState()
    pdf.translate(center_x, center_y)
    if layout.rotated:
        # reportlab rotates counterclockwise for positive angles
        pdf.rotate(-layout.rotation.value)
    pdf.drawImage(
        reader,
        -draw_w / 2,
        -draw_h / 2,
        width=draw_w,
        height=draw_h,
        mask="auto",
    )
    pdf.restoreState()


def render_document(document: Document, style: PdfStyle | None = None) -> bytes:
    """Render a planned :class:`Document` to PDF bytes.

    Raises:
        ImageToElementConversionError: If any page image cannot be decoded.
        RenderError: If reportlab fails to draw or serialize the document.
    """
    style = style or PdfStyle()
    geometry = document.geometry
    buffer = io.BytesIO()

    pdf = canvas.Canvas(
        buffer,
        pagesize=(geometry.page_width * mm, geometry.page_height * mm),
        invariant=True,
    )
    pdf.setTitle(document.title)
    pdf.setCreator("imgbundle-pdf")

    for page in document.pages:
        reader = _to_image_reader(page.record)
        try:
            pdf.setFont(style.font_name, style.font_size)
            _draw_page(pdf=pdf, page=page, reader=reader, geometry=geometry)
            if page.page_break_after:
                pdf.showPage()
        except (KeyError, ValueError, TypeError, OSError) as exc:
            raise RenderError(
                f"Failed to draw page {page.record.index + 1} of "
                f"'{document.title}': {exc}"
            ) from exc

    try:
        pdf.save()
    except (ValueError, TypeError, OSError) as exc:
        raise RenderError(f"Failed to render '{document.title}': {exc}") from exc

    return buffer.getvalue()


def assemble_pdf(
    collection: ImageCollection,
    *,
    geometry: PageGeometry | None = None,
    style: PdfStyle | None = None,
) -> bytes:
    """Combine a collection's images into a single PDF byte stream.

    Args:
        collection: Validated images in page order.
        geometry: Page size, margin and DPI. Defaults to A4, 10mm, 300 DPI.
        style: Font resource for the document.

    Returns:
        The complete PDF as bytes. Nothing partial is ever returned.
    """
    document = build_document(collection=collection, geometry=geometry)
    return render_document(document=document, style=style)


def write_pdf(pdf_bytes: bytes, output_path: Path) -> int:
    """Write *pdf_bytes* to *output_path*, creating parent directories.

    Returns:
        Size of the written PDF in bytes.

    Raises:
        PersistError: If the file cannot be written.
    """
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(pdf_bytes)
    except OSError as exc:
        raise PersistError(path=output_path, cause=exc) from exc

    return len(pdf_bytes)
