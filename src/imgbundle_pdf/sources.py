"""Input sources: folders and zip archives of page images."""

from __future__ import annotations

import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Protocol

from loguru import logger

from .collection import ImageBundleError

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "bmp"})


class SourceError(ImageBundleError):
    """Raised when a source path is invalid or cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


def is_image_name(name: str) -> bool:
    """Return True if *name* has a non-empty stem and an image extension."""
    pure = PurePosixPath(name)
    return bool(pure.stem) and pure.suffix[1:].lower() in IMAGE_EXTENSIONS


class InputSource(Protocol):
    """Anything that yields named image blobs for one document."""

    @property
    def name(self) -> str: ...

    @property
    def path(self) -> Path: ...

    def entries(self) -> list[tuple[str, bytes]]: ...


@dataclass(frozen=True)
class DirectorySource:
    """A folder whose direct image files become the pages of one PDF."""

    path: Path

    def __post_init__(self) -> None:
        if not self.path.exists():
            raise SourceError(self.path, "path does not exist")
        if not self.path.is_dir():
            raise SourceError(self.path, "path is not a directory")

    @property
    def name(self) -> str:
        return self.path.name or "untitled_folder"

    def entries(self) -> list[tuple[str, bytes]]:
        """Read image files in file-name order (no recursion)."""
        try:
            paths = sorted(
                p for p in self.path.iterdir()
                if p.is_file() and is_image_name(p.name)
            )
            result = [(p.name, p.read_bytes()) for p in paths]
        except OSError as exc:
            raise SourceError(self.path, f"could not read images: {exc}") from exc

        logger.debug("{} image(s) found in folder {}", len(result), self.path)
        return result


@dataclass(frozen=True)
class ZipSource:
    """A zip archive whose image members become the pages of one PDF."""

    path: Path

    def __post_init__(self) -> None:
        if not self.path.exists():
            raise SourceError(self.path, "path does not exist")
        if not self.path.is_file():
            raise SourceError(self.path, "path is not a file")
        if self.path.suffix.lower() != ".zip":
            raise SourceError(self.path, "path is not a .zip file")

    @property
    def name(self) -> str:
        return self.path.stem or "untitled_zip"

    def entries(self) -> list[tuple[str, bytes]]:
        """Read image members sorted by member name.

        Sorting happens before reading so page order (and any reported
        element index) does not depend on the archive's central directory
        order.
        """
        try:
            with zipfile.ZipFile(self.path) as archive:
                names = sorted(
                    info.filename for info in archive.infolist()
                    if not info.is_dir() and is_image_name(info.filename)
                )
                result = [(name, archive.read(name)) for name in names]
        except (
            OSError,
            EOFError,
            RuntimeError,
            NotImplementedError,
            zipfile.BadZipFile,
            zlib.error,
        ) as exc:
            # RuntimeError: encrypted member; NotImplementedError: unsupported
            # compression method
            raise SourceError(self.path, f"could not read archive: {exc}") from exc

        logger.debug("{} image(s) found in archive {}", len(result), self.path)
        return result


def open_source(path: Path) -> DirectorySource | ZipSource | None:
    """Wrap *path* as a source, or return None if it is neither kind."""
    if path.is_dir():
        return DirectorySource(path)
    if path.is_file() and path.suffix.lower() == ".zip":
        return ZipSource(path)
    return None


def discover_sources(input_dir: Path) -> list[DirectorySource | ZipSource]:
    """List the folders and zip archives directly inside *input_dir*.

    Raises:
        SourceError: If *input_dir* is missing, not a directory or unreadable.
    """
    root = DirectorySource(input_dir)
    try:
        children = sorted(root.path.iterdir())
    except OSError as exc:
        raise SourceError(input_dir, f"could not list directory: {exc}") from exc

    sources = []
    for child in children:
        source = open_source(child)
        if source is None:
            logger.debug("Ignoring {}", child)
            continue
        sources.append(source)
    return sources
