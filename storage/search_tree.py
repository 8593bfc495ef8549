"""Binary search tree over address bits.

The tree occupies the start of the file: node_count fixed-size nodes, each
holding two child slots (left for bit 0, right for bit 1). Node layouts by
record size:

    24 bits (6 bytes):  [left:3][right:3]
    28 bits (7 bytes):  [left low:3][left high nibble | right high nibble][right low:3]
    32 bits (8 bytes):  [left:4][right:4]

A child slot value v means:
    v <  node_count   another node
    v == node_count   no data for this address
    v >  node_count   data at data_section_start + (v - node_count - 16)

Searches take the address bits left-aligned in a 64-bit integer (bit 63
first) and may stop after fewer bits than the full address, returning a
Partial result that a later search can resume from. That is how 128-bit
IPv6 addresses are looked up as four 32-bit words.
"""

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass

from exceptions import CorruptDatabaseError, MMDBError, UnsupportedRecordSizeError
from models.metadata import DATA_SECTION_SEPARATOR_SIZE, Metadata
from models.value import Value
from storage.buffer import ByteStore
from storage.decoder import Decoder, decode_uint

MAX_SEARCH_BITS = 64


@dataclass(frozen=True)
class NotFound:
    """The address has no data in this database."""


@dataclass(frozen=True)
class Partial:
    """All requested bits were consumed without reaching data."""

    node: int


@dataclass(frozen=True)
class Found:
    value: Value


@dataclass(frozen=True)
class Failed:
    """The walk could not be completed (bad arguments or corrupt tree)."""

    reason: str


SearchResult = NotFound | Partial | Found | Failed


def split_nibbles(byte: int) -> tuple[int, int]:
    """Split the shared middle byte of a 28-bit node into (left, right) high nibbles."""
    return byte >> 4, byte & 0x0F


def pack_prefix(bits: int, length: int) -> list[int]:
    """Pack a path of ``length`` bits into left-aligned 32-bit words."""
    word_count = (length + 31) // 32
    aligned = bits << (word_count * 32 - length)
    return [(aligned >> (32 * (word_count - 1 - i))) & 0xFFFFFFFF for i in range(word_count)]


class SearchTree:
    """Read-only view of the search tree of an opened database."""

    def __init__(self, store: ByteStore, metadata: Metadata, decoder: Decoder):
        self.store = store
        self.metadata = metadata
        self.decoder = decoder
        self.node_count = metadata.node_count

        readers = {24: self._read_node_24, 28: self._read_node_28, 32: self._read_node_32}
        if metadata.record_size not in readers:
            raise UnsupportedRecordSizeError(metadata.record_size)
        self._read_node = readers[metadata.record_size]

    def read_node(self, node: int, side: int) -> int:
        """Child slot value of ``node``; side 0 is left, 1 is right."""
        return self._read_node(node, side)

    def _read_node_24(self, node: int, side: int) -> int:
        base = node * 6 + (3 if side else 0)
        return decode_uint(self.store.read(base, 3))

    def _read_node_28(self, node: int, side: int) -> int:
        base = node * 7
        left_high, right_high = split_nibbles(self.store.byte_at(base + 3))
        if side:
            return (right_high << 24) | decode_uint(self.store.read(base + 4, 3))
        return (left_high << 24) | decode_uint(self.store.read(base, 3))

    def _read_node_32(self, node: int, side: int) -> int:
        base = node * 8 + (4 if side else 0)
        return decode_uint(self.store.read(base, 4))

    def descend(self, start_node: int, value: int, bits: int) -> int:
        """Walk ``bits`` bits of ``value`` from ``start_node``.

        Returns the last slot value reached: a node index if every bit was
        consumed, otherwise the terminal record (not found or data).
        """
        node = start_node
        for bit in range(bits):
            node = self.read_node(node, (value >> (MAX_SEARCH_BITS - 1 - bit)) & 1)
            if node >= self.node_count:
                break
        return node

    def resolve(self, record: int) -> SearchResult:
        """Turn a slot value into a SearchResult, decoding data if present."""
        if record < self.node_count:
            return Partial(record)
        if record == self.node_count:
            return NotFound()

        try:
            offset = self.data_offset(record)
            value, _ = self.decoder.decode(offset, self.metadata.data_section_start)
        except MMDBError as e:
            return Failed(f"Failed to read value in search: {e}")
        return Found(value)

    def data_offset(self, record: int) -> int:
        """File offset of the data a record points to."""
        relative = record - self.node_count - DATA_SECTION_SEPARATOR_SIZE
        if relative < 0:
            raise CorruptDatabaseError(f"Record {record} points into the data section separator")
        return self.metadata.data_section_start + relative

    def search(self, value: int, bits: int, start_node: int = 0) -> SearchResult:
        """Search the first ``bits`` bits of ``value`` (bit 63 first)."""
        if not 0 <= start_node < self.node_count:
            return Failed(f"Invalid starting node number: {start_node}")
        if not 0 <= bits <= MAX_SEARCH_BITS:
            return Failed(f"Invalid bit count: {bits}")

        try:
            record = self.descend(start_node, value, bits)
        except MMDBError as e:
            return Failed(str(e))
        return self.resolve(record)

    def search_words(self, words: Sequence[int], bits: int, word_bits: int = 32, start_node: int = 0) -> SearchResult:
        """Search an address split into fixed-width words, most significant first.

        Each word is searched with the continuation node of the previous one.
        Stops once ``bits`` bits are consumed.
        """
        if not 0 <= start_node < self.node_count:
            return Failed(f"Invalid starting node number: {start_node}")
        if bits < 0:
            return Failed(f"Invalid bit count: {bits}")
        if not 0 < word_bits <= MAX_SEARCH_BITS:
            return Failed(f"Invalid word width: {word_bits}")

        node = start_node
        remaining = bits
        for word in words:
            if remaining <= 0:
                break
            result = self.search(word << (MAX_SEARCH_BITS - word_bits), min(remaining, word_bits), start_node=node)
            if not isinstance(result, Partial):
                return result
            node = result.node
            remaining -= word_bits
        return Partial(node)

    def iter_records(self) -> Iterator[tuple[int, int, int]]:
        """Yield (path bits, path length, record) for every data record.

        Depth-first, left before right. The walk stops at the address width
        (32 or 128 bits) whatever the tree claims, so a tree whose children
        loop back to an ancestor still terminates.
        """
        yield from self._walk(0, 0, 0)

    def _walk(self, node: int, path: int, depth: int) -> Iterator[tuple[int, int, int]]:
        if depth >= self.metadata.tree_depth:
            return

        for side in (0, 1):
            child = self.read_node(node, side)
            child_path = (path << 1) | side
            if child > self.node_count:
                yield child_path, depth + 1, child
            elif child < self.node_count:
                yield from self._walk(child, child_path, depth + 1)

    def enumerate(self, visit: Callable[[list[int], int], None]) -> None:
        """Call ``visit(prefix_words, prefix_length)`` for every data record."""
        for path, length, _ in self.iter_records():
            visit(pack_prefix(path, length), length)
