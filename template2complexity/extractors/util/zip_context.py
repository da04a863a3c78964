import io
import logging
from xml.etree import ElementTree as ET

from template2complexity.extractors.util.zip_bomb import (
    DEFAULT_ZIP_BOMB_LIMITS,
    ZipBombLimits,
    open_zipfile,
)

logger = logging.getLogger(__name__)


class ZipContext:
    """ZIP archive opened once, with helpers for reading OOXML parts."""

    def __init__(
        self, data: bytes, limits: ZipBombLimits = DEFAULT_ZIP_BOMB_LIMITS
    ):
        self._zip = open_zipfile(io.BytesIO(data), limits=limits, source="ZipContext")
        self._namelist = self._zip.namelist()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @property
    def namelist(self) -> list[str]:
        """Part names in archive order."""
        return list(self._namelist)

    def exists(self, path: str) -> bool:
        return path in self._namelist

    def read_bytes(self, path: str) -> bytes:
        return self._zip.read(path)

    def read_xml_root(self, path: str) -> ET.Element:
        with self._zip.open(path) as stream:
            return ET.parse(stream).getroot()

    def close(self) -> None:
        self._zip.close()
