"""Validation of raw image blobs into an ordered, immutable image collection."""

from __future__ import annotations

import io
from collections.abc import Sequence
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

# Pillow format names accepted as page images (MPO is how Pillow reports
# multi-picture JPEGs written by many cameras).
SUPPORTED_FORMATS = frozenset({"PNG", "JPEG", "MPO", "GIF", "BMP"})


class ImageBundleError(Exception):
    """Base exception for imgbundle-pdf errors."""


class EmptyCollectionError(ImageBundleError):
    """Raised when a collection is built from an empty list of blobs."""


class NotAnImageError(ImageBundleError):
    """Raised when a blob cannot be decoded as a supported raster image.

    ``index`` is the 0-based position of the blob in the caller's list.
    """

    def __init__(self, index: int, cause: Exception | None = None) -> None:
        self.index = index
        self.cause = cause
        message = f"Element at index {index} is not a readable image"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


def read_dimensions(data: bytes) -> tuple[int, int]:
    """Return ``(width, height)`` in pixels by reading only the image header.

    Raises:
        ValueError: If the bytes are not a supported image format.
        OSError: If Pillow cannot identify or parse the header.
    """
    with Image.open(io.BytesIO(data)) as img:
        if img.format not in SUPPORTED_FORMATS:
            raise ValueError(f"unsupported image format: {img.format}")
        width, height = img.size
    if width < 1 or height < 1:
        raise ValueError(f"invalid image size: {width}x{height}")
    return width, height


@dataclass(frozen=True)
class ImageRecord:
    """One validated input image."""

    index: int
    data: bytes
    width: int
    height: int


@dataclass(frozen=True)
class ImageCollection:
    """A named, ordered, non-empty set of images destined for one document."""

    name: str
    records: tuple[ImageRecord, ...]
    max_width: int
    max_height: int

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)


def build_collection(blobs: Sequence[bytes], name: str) -> ImageCollection:
    """Decode every blob's dimensions and build an :class:`ImageCollection`.

    The first blob that fails to decode aborts construction; nothing is
    returned for a partially valid list.

    Args:
        blobs: Raw image bytes in page order.
        name: Display name, used as document title and output file stem.

    Raises:
        EmptyCollectionError: If *blobs* is empty.
        NotAnImageError: If any blob is not a supported image.
    """
    if not blobs:
        raise EmptyCollectionError(
            f"No image data given for '{name}'; pass at least one image."
        )

    records: list[ImageRecord] = []
    max_width = 0
    max_height = 0
    for index, data in enumerate(blobs):
        try:
            width, height = read_dimensions(data)
        except (
            UnidentifiedImageError,
            OSError,
            ValueError,
            Image.DecompressionBombError,
        ) as exc:
            raise NotAnImageError(index=index, cause=exc) from exc

        records.append(
            ImageRecord(index=index, data=data, width=width, height=height)
        )
        max_width = max(max_width, width)
        max_height = max(max_height, height)

    return ImageCollection(
        name=name,
        records=tuple(records),
        max_width=max_width,
        max_height=max_height,
    )
