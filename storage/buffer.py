"""In-memory database image with bounds-checked reads.

The ByteStore is the only component that indexes into the raw bytes. Every
offset computed elsewhere (node positions, data pointers, payload sizes)
is checked here before use, so a corrupt file produces an
IndexOutOfRangeError instead of a silent short read.
"""

from pathlib import Path
from typing import Self

from exceptions import IndexOutOfRangeError, MetadataNotFoundError
from models.metadata import METADATA_MARKER


class ByteStore:
    """Immutable view over a complete database file."""

    def __init__(self, data: bytes | bytearray | memoryview):
        self._data = bytes(data)

    @classmethod
    def from_path(cls, path: Path | str) -> Self:
        """Read a whole database file into memory."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Database file not found: {path}")
        return cls(path.read_bytes())

    def __len__(self) -> int:
        return len(self._data)

    @property
    def size(self) -> int:
        return len(self._data)

    def read(self, offset: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``offset``."""
        if offset < 0 or length < 0 or offset + length > len(self._data):
            raise IndexOutOfRangeError(offset, length, len(self._data))
        return self._data[offset : offset + length]

    def byte_at(self, offset: int) -> int:
        if offset < 0 or offset >= len(self._data):
            raise IndexOutOfRangeError(offset, 1, len(self._data))
        return self._data[offset]

    def find_metadata_start(self) -> int:
        """Offset of the first byte after the last metadata marker.

        The marker can occur by chance inside the data section, so only the
        rightmost occurrence counts.
        """
        index = self._data.rfind(METADATA_MARKER)
        if index == -1:
            raise MetadataNotFoundError("Could not find metadata marker")
        return index + len(METADATA_MARKER)
