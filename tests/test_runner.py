"""Tests for per-source conversion and batch processing."""

from __future__ import annotations

import inspect
import re
import zipfile
from pathlib import Path

import pytest

from conftest import corrupt_deflate_zip, encrypted_flag_zip, make_png
from imgbundle_pdf import convert_folder
from imgbundle_pdf.collection import EmptyCollectionError, NotAnImageError
from imgbundle_pdf.runner import (
    DEFAULT_CONCURRENCY,
    BatchResult,
    SourceResult,
    SourceStatus,
    _resolve_output_path,
    convert_source,
    convert_sources,
)
from imgbundle_pdf.sources import DirectorySource, SourceError, ZipSource

_PAGE_OBJECT = re.compile(rb"/Type /Page\b(?!s)")


def _count_pages(pdf_bytes: bytes) -> int:
    return len(_PAGE_OBJECT.findall(pdf_bytes))


def _make_folder(root: Path, name: str, count: int) -> Path:
    folder = root / name
    folder.mkdir(parents=True)
    for i in range(count):
        (folder / f"page_{i + 1:02d}.png").write_bytes(
            make_png(width=20 + i, height=30)
        )
    return folder


class _StaticSource:
    """In-memory source for exercising the runner without a filesystem."""

    def __init__(self, name: str, entries: list[tuple[str, bytes]]) -> None:
        self.name = name
        self.path = Path(name)
        self._entries = entries

    def entries(self) -> list[tuple[str, bytes]]:
        return list(self._entries)


class TestResolveOutputPath:
    def test_name_becomes_pdf_stem(self, tmp_path: Path):
        assert _resolve_output_path(tmp_path, "My Album") == tmp_path / "My Album.pdf"


class TestConvertSource:
    def test_folder_converted(self, tmp_path: Path):
        folder = _make_folder(tmp_path / "in", "album", count=3)
        out_dir = tmp_path / "out"

        result = convert_source(DirectorySource(folder), out_dir)

        assert result.status is SourceStatus.CONVERTED
        assert result.page_count == 3
        assert result.output_path == out_dir / "album.pdf"
        assert result.output_path.read_bytes()[:5] == b"%PDF-"
        assert result.pdf_bytes == result.output_path.stat().st_size

    def test_zip_converted(self, tmp_path: Path):
        archive = tmp_path / "scans.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            zf.writestr("02.png", make_png(width=10, height=10))
            zf.writestr("01.png", make_png(width=12, height=10))

        result = convert_source(ZipSource(archive), tmp_path)

        assert result.status is SourceStatus.CONVERTED
        assert result.page_count == 2
        assert (tmp_path / "scans.pdf").exists()

    def test_source_without_images_skipped(self, tmp_path: Path):
        folder = tmp_path / "empty"
        folder.mkdir()

        result = convert_source(DirectorySource(folder), tmp_path)

        assert result.status is SourceStatus.SKIPPED
        assert result.error is None
        assert not (tmp_path / "empty.pdf").exists()

    def test_bad_image_fails_with_index(self, tmp_path: Path):
        source = _StaticSource(
            "broken",
            [("a.png", make_png()), ("b.png", b"garbage"), ("c.png", make_png())],
        )

        result = convert_source(source, tmp_path)

        assert result.status is SourceStatus.FAILED
        assert isinstance(result.error, NotAnImageError)
        assert result.error.index == 1
        assert not (tmp_path / "broken.pdf").exists()

    def test_unreadable_source_fails(self, tmp_path: Path):
        broken = tmp_path / "broken.zip"
        broken.write_bytes(b"not a zip")

        result = convert_source(ZipSource(broken), tmp_path)

        assert result.status is SourceStatus.FAILED
        assert isinstance(result.error, SourceError)


class TestBatchResult:
    def test_counters(self):
        result = BatchResult(results=[
            SourceResult("a", SourceStatus.CONVERTED, Path("a.pdf"), 2, 100),
            SourceResult("b", SourceStatus.FAILED, Path("b.pdf"), error=EmptyCollectionError("x")),
            SourceResult("c", SourceStatus.SKIPPED, Path("c.pdf")),
            SourceResult("d", SourceStatus.CONVERTED, Path("d.pdf"), 1, 50),
        ])

        assert result.successes == 2
        assert result.failures == 1
        assert result.skipped == 1
        assert result.total_bytes == 150
        assert result.failed_sources == ["b"]
        assert result.ok

    def test_not_ok_without_conversions(self):
        result = BatchResult(results=[
            SourceResult("c", SourceStatus.SKIPPED, Path("c.pdf")),
        ])

        assert not result.ok


class TestConvertSources:
    @pytest.mark.asyncio
    async def test_failure_isolated_to_its_source(self, tmp_path: Path):
        sources = [
            _StaticSource("good_1", [("a.png", make_png())]),
            _StaticSource("bad", [("a.png", b"nope")]),
            _StaticSource("good_2", [("a.png", make_png()), ("b.png", make_png())]),
        ]

        result = await convert_sources(sources=sources, output_dir=tmp_path, concurrency=2)

        assert [r.name for r in result.results] == ["good_1", "bad", "good_2"]
        assert result.successes == 2
        assert result.failed_sources == ["bad"]
        assert (tmp_path / "good_1.pdf").exists()
        assert (tmp_path / "good_2.pdf").exists()
        assert not (tmp_path / "bad.pdf").exists()

    @pytest.mark.asyncio
    async def test_callback_sees_every_result(self, tmp_path: Path):
        sources = [
            _StaticSource(f"s{i}", [("a.png", make_png())]) for i in range(5)
        ]
        seen: list[str] = []

        await convert_sources(
            sources=sources,
            output_dir=tmp_path,
            concurrency=1,
            on_source_done=lambda r: seen.append(r.name),
        )

        assert sorted(seen) == [f"s{i}" for i in range(5)]

    @pytest.mark.asyncio
    async def test_creates_output_directory(self, tmp_path: Path):
        out_dir = tmp_path / "nested" / "out"

        result = await convert_sources(
            sources=[_StaticSource("one", [("a.png", make_png())])],
            output_dir=out_dir,
        )

        assert result.ok
        assert (out_dir / "one.pdf").exists()

    @pytest.mark.asyncio
    async def test_no_sources(self, tmp_path: Path):
        result = await convert_sources(sources=[], output_dir=tmp_path)

        assert result.results == []
        assert not result.ok

    @pytest.mark.asyncio
    async def test_unreadable_archives_do_not_abort_batch(self, tmp_path: Path):
        input_dir = tmp_path / "input"
        _make_folder(input_dir, "album", count=2)
        sources = [
            DirectorySource(input_dir / "album"),
            ZipSource(corrupt_deflate_zip(input_dir / "corrupt.zip")),
            ZipSource(encrypted_flag_zip(input_dir / "locked.zip")),
        ]

        result = await convert_sources(sources=sources, output_dir=tmp_path / "out")

        assert result.successes == 1
        assert result.failures == 2
        assert result.failed_sources == ["corrupt", "locked"]
        assert all(isinstance(r.error, SourceError) for r in result.results[1:])
        assert (tmp_path / "out" / "album.pdf").exists()

    @pytest.mark.asyncio
    async def test_same_output_name_last_source_wins(self, tmp_path: Path):
        input_dir = tmp_path / "input"
        _make_folder(input_dir, "foo", count=2)
        with zipfile.ZipFile(input_dir / "foo.zip", "w") as zf:
            zf.writestr("p1.png", make_png())
        sources = [DirectorySource(input_dir / "foo"), ZipSource(input_dir / "foo.zip")]
        order: list[int] = []

        result = await convert_sources(
            sources=sources,
            output_dir=tmp_path,
            concurrency=4,
            on_source_done=lambda r: order.append(r.page_count),
        )

        assert [r.status for r in result.results] == [SourceStatus.CONVERTED] * 2
        assert [r.page_count for r in result.results] == [2, 1]
        assert order == [2, 1]
        assert _count_pages((tmp_path / "foo.pdf").read_bytes()) == 1


class TestConvertFolder:
    @pytest.mark.asyncio
    async def test_converts_folders_and_zips(self, tmp_path: Path):
        input_dir = tmp_path / "input"
        _make_folder(input_dir, "album", count=2)
        (input_dir / "empty").mkdir()
        with zipfile.ZipFile(input_dir / "book.zip", "w") as zf:
            zf.writestr("p1.png", make_png())

        result = await convert_folder(input_dir)

        assert result.successes == 2
        assert result.skipped == 1
        assert (input_dir / "album.pdf").exists()
        assert (input_dir / "book.pdf").exists()

    @pytest.mark.asyncio
    async def test_separate_output_dir(self, tmp_path: Path):
        input_dir = tmp_path / "input"
        _make_folder(input_dir, "album", count=1)
        out_dir = tmp_path / "pdfs"

        result = await convert_folder(input_dir, out_dir)

        assert result.ok
        assert (out_dir / "album.pdf").exists()
        assert not (input_dir / "album.pdf").exists()

    @pytest.mark.asyncio
    async def test_missing_input_dir_raises(self, tmp_path: Path):
        with pytest.raises(SourceError):
            await convert_folder(tmp_path / "missing")

    def test_default_concurrency_shared_with_runner(self):
        default = inspect.signature(convert_folder).parameters["concurrency"].default

        assert default == DEFAULT_CONCURRENCY
