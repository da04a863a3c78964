import io
import zipfile

import pytest

from template2complexity.exceptions import ExtractionZipBombError
from template2complexity.extractors.util.zip_bomb import ZipBombLimits, open_zipfile
from template2complexity.extractors.util.zip_context import ZipContext


def _make_zip_bytes(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def test_zip_bomb_detection_can_use_low_thresholds__compression_ratio() -> None:
    data = _make_zip_bytes({"a.txt": b"A" * 10_000})

    with pytest.raises(ExtractionZipBombError):
        open_zipfile(
            io.BytesIO(data),
            limits=ZipBombLimits(
                max_entry_compression_ratio=10.0,
                max_total_compression_ratio=10.0,
            ),
            source="test",
        )

    zf = open_zipfile(
        io.BytesIO(data),
        limits=ZipBombLimits(
            max_entry_compression_ratio=10_000.0,
            max_total_compression_ratio=10_000.0,
        ),
        source="test",
    )
    zf.close()


def test_zip_bomb_detection_can_use_low_thresholds__entry_count() -> None:
    data = _make_zip_bytes({"a.txt": b"a", "b.txt": b"b", "c.txt": b"c"})

    with pytest.raises(ExtractionZipBombError) as excinfo:
        ZipContext(data, limits=ZipBombLimits(max_entries=2))
    assert "too many entries" in str(excinfo.value)


def test_zip_bomb_detection_can_use_low_thresholds__single_entry_size() -> None:
    data = _make_zip_bytes({"big.txt": bytes(range(256)) * 8})

    with pytest.raises(ExtractionZipBombError):
        ZipContext(data, limits=ZipBombLimits(max_single_uncompressed_bytes=1024))


def test_zip_context_reads_parts_in_archive_order() -> None:
    data = _make_zip_bytes({"b.xml": b"<b/>", "a.xml": b"<a>text</a>"})

    with ZipContext(data) as ctx:
        assert ctx.namelist == ["b.xml", "a.xml"]
        assert ctx.exists("a.xml")
        assert not ctx.exists("c.xml")
        assert ctx.read_bytes("b.xml") == b"<b/>"
        assert ctx.read_xml_root("a.xml").text == "text"
