from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass

from template2complexity.exceptions import ExtractionZipBombError


@dataclass(frozen=True)
class ZipBombLimits:
    """
    Limits applied before any OOXML part is decompressed.

    Templates are small; anything near these numbers is either a bomb or
    not a word-processing template.
    """

    max_entries: int = 10_000
    max_total_uncompressed_bytes: int = 512 * 1024 * 1024  # 512 MiB
    max_single_uncompressed_bytes: int = 256 * 1024 * 1024  # 256 MiB
    max_total_compression_ratio: float = 200.0
    max_entry_compression_ratio: float = 500.0


DEFAULT_ZIP_BOMB_LIMITS = ZipBombLimits()


def _fail(message: str, source: str | None) -> ExtractionZipBombError:
    return ExtractionZipBombError(message + (f" [{source}]" if source else ""))


def validate_zipfile(
    zf: zipfile.ZipFile,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> None:
    """Raise ExtractionZipBombError when the archive's directory breaks a limit."""
    infos = zf.infolist()
    if len(infos) > limits.max_entries:
        raise _fail(
            f"ZIP container has too many entries ({len(infos)} > {limits.max_entries})",
            source,
        )

    total_uncompressed = 0
    total_compressed = 0
    for info in infos:
        if info.is_dir():
            continue

        if info.file_size > limits.max_single_uncompressed_bytes:
            raise _fail(
                f"ZIP entry {info.filename} too large ({info.file_size} bytes)", source
            )
        if info.file_size > 0:
            if info.compress_size <= 0:
                raise _fail(
                    f"ZIP entry {info.filename} has zero compressed size", source
                )
            ratio = info.file_size / info.compress_size
            if ratio > limits.max_entry_compression_ratio:
                raise _fail(
                    f"ZIP entry {info.filename} compression ratio too high ({ratio:.1f})",
                    source,
                )

        total_uncompressed += info.file_size
        total_compressed += info.compress_size
        if total_uncompressed > limits.max_total_uncompressed_bytes:
            raise _fail(
                f"ZIP total uncompressed size too large ({total_uncompressed} bytes)",
                source,
            )

    if total_uncompressed > 0 and total_compressed > 0:
        total_ratio = total_uncompressed / total_compressed
        if total_ratio > limits.max_total_compression_ratio:
            raise _fail(
                f"ZIP total compression ratio too high ({total_ratio:.1f})", source
            )


def open_zipfile(
    file_like: io.BytesIO,
    *,
    limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS,
    source: str | None = None,
) -> zipfile.ZipFile:
    """
    Open and validate a ZIP container.

    Caller owns the returned ZipFile and must close it.
    """
    file_like.seek(0)
    zf = zipfile.ZipFile(file_like, "r")
    try:
        validate_zipfile(zf, limits=limits, source=source)
    except Exception:
        zf.close()
        raise
    return zf
