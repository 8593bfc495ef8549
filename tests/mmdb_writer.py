"""Minimal MMDB writer used to build synthetic databases for tests.

Encodes values, pointers and search trees in the on-disk format read by
the storage package. Not part of the library: it only supports what the
tests need (no deduplication, no aliasing of IPv4 into IPv6 ranges).
"""

import ipaddress
import struct

from models.metadata import DATA_SECTION_SEPARATOR_SIZE, METADATA_MARKER
from models.value import (
    ArrayValue,
    BooleanValue,
    BytesValue,
    DoubleValue,
    FieldType,
    FloatValue,
    Int32Value,
    MapValue,
    StringValue,
    UInt16Value,
    UInt32Value,
    UInt64Value,
    UInt128Value,
    Value,
)


def encode_control(field_type: int, size: int) -> bytes:
    """Control byte(s) for a value of ``field_type`` with payload ``size``."""
    if field_type >= 8:
        type_bits, extended = 0, bytes([field_type - 7])
    else:
        type_bits, extended = field_type, b""

    if size < 29:
        size_bits, extra = size, b""
    elif size < 285:
        size_bits, extra = 29, (size - 29).to_bytes(1, "big")
    elif size < 65821:
        size_bits, extra = 30, (size - 285).to_bytes(2, "big")
    else:
        size_bits, extra = 31, (size - 65821).to_bytes(3, "big")

    return bytes([(type_bits << 5) | size_bits]) + extended + extra


def encode_pointer(value: int, size_class: int | None = None) -> bytes:
    """Pointer to ``value`` bytes past the pointer base.

    Picks the smallest size class unless one is forced.
    """
    if size_class is None:
        if value < 2048:
            size_class = 0
        elif value < 526336:
            size_class = 1
        elif value < 134744064:
            size_class = 2
        else:
            size_class = 3

    if size_class == 3:
        return bytes([0x20 | (3 << 3)]) + value.to_bytes(4, "big")

    stored = value - (0, 2048, 526336)[size_class]
    payload_len = size_class + 1
    high = stored >> (8 * payload_len)
    if not 0 <= high <= 7:
        raise ValueError(f"Pointer value {value} does not fit size class {size_class}")
    control = 0x20 | (size_class << 3) | high
    return bytes([control]) + (stored & ((1 << (8 * payload_len)) - 1)).to_bytes(payload_len, "big")


def _uint_bytes(value: int) -> bytes:
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def encode_value(value: Value) -> bytes:
    """Encode a value inline (no pointers)."""
    match value:
        case MapValue():
            body = b"".join(encode_value(StringValue(value=k)) + encode_value(v) for k, v in value.value.items())
            return encode_control(FieldType.MAP, len(value.value)) + body
        case ArrayValue():
            body = b"".join(encode_value(v) for v in value.value)
            return encode_control(FieldType.ARRAY, len(value.value)) + body
        case BooleanValue():
            return encode_control(FieldType.BOOLEAN, 1 if value.value else 0)
        case StringValue():
            payload = value.value.encode("utf-8")
        case DoubleValue():
            payload = struct.pack(">d", value.value)
        case FloatValue():
            payload = struct.pack(">f", value.value)
        case BytesValue():
            payload = value.value
        case Int32Value():
            payload = struct.pack(">i", value.value)
        case UInt128Value():
            payload = _uint_bytes(value.value)
        case UInt16Value() | UInt32Value() | UInt64Value():
            payload = _uint_bytes(value.value)
        case _:
            raise TypeError(f"Cannot encode {type(value).__name__}")
    return encode_control(value.FIELD_TYPE, len(payload)) + payload


def string(text: str) -> StringValue:
    return StringValue(value=text)


def record(**fields: Value) -> MapValue:
    return MapValue(value=fields)


def pack_node(left: int, right: int, record_size: int) -> bytes:
    """Encode one search tree node."""
    if record_size == 24:
        return left.to_bytes(3, "big") + right.to_bytes(3, "big")
    if record_size == 28:
        middle = ((left >> 24) << 4) | (right >> 24)
        return (left & 0xFFFFFF).to_bytes(3, "big") + bytes([middle]) + (right & 0xFFFFFF).to_bytes(3, "big")
    if record_size == 32:
        return left.to_bytes(4, "big") + right.to_bytes(4, "big")
    raise ValueError(f"Unsupported record size {record_size}")


def metadata_map(
    node_count: int,
    record_size: int,
    ip_version: int,
    database_type: str,
    major_version: int = 2,
    build_epoch: int = 1_650_000_000,
) -> MapValue:
    return MapValue(
        value={
            "binary_format_major_version": UInt16Value(value=major_version),
            "binary_format_minor_version": UInt16Value(value=0),
            "build_epoch": UInt64Value(value=build_epoch),
            "ip_version": UInt16Value(value=ip_version),
            "record_size": UInt16Value(value=record_size),
            "node_count": UInt32Value(value=node_count),
            "database_type": string(database_type),
            "languages": ArrayValue(value=[string("en")]),
            "description": MapValue(value={"en": string(f"{database_type} test database")}),
        }
    )


def assemble(tree: bytes, data: bytes, metadata: MapValue | bytes) -> bytes:
    """Concatenate tree, separator, data section, marker and metadata."""
    meta_bytes = metadata if isinstance(metadata, bytes) else encode_value(metadata)
    return tree + b"\x00" * DATA_SECTION_SEPARATOR_SIZE + data + METADATA_MARKER + meta_bytes


class MMDBWriter:
    """Builds a database from (network, value) pairs.

    Networks are inserted into an uncompressed binary trie; IPv4 networks
    in an IPv6 database live under ::/96.
    """

    def __init__(self, ip_version: int = 6, record_size: int = 28, database_type: str = "Test"):
        self.ip_version = ip_version
        self.record_size = record_size
        self.database_type = database_type
        self._width = 32 if ip_version == 4 else 128
        # node index -> [left, right]; a slot is None, a node index, or ("data", offset)
        self._nodes: list[list] = [[None, None]]
        self._data = bytearray()

    def add_data(self, value: Value) -> int:
        """Append a value to the data section, returning its offset."""
        offset = len(self._data)
        self._data += encode_value(value)
        return offset

    def add_raw_data(self, raw: bytes) -> int:
        offset = len(self._data)
        self._data += raw
        return offset

    def insert(self, network: str, value: Value) -> None:
        self.insert_offset(network, self.add_data(value))

    def insert_offset(self, network: str, data_offset: int) -> None:
        net = ipaddress.ip_network(network)
        bits = int(net.network_address)
        length = net.prefixlen
        if net.version == 4 and self.ip_version == 6:
            length += 96
        elif net.version == 6 and self.ip_version == 4:
            raise ValueError("IPv6 network in IPv4 database")

        node = 0
        for i in range(length):
            side = (bits >> (self._width - 1 - i)) & 1
            if i == length - 1:
                self._nodes[node][side] = ("data", data_offset)
                break
            child = self._nodes[node][side]
            if not isinstance(child, int):
                self._nodes.append([None, None])
                child = len(self._nodes) - 1
                self._nodes[node][side] = child
            node = child

    def build_tree(self) -> tuple[bytes, int]:
        node_count = len(self._nodes)
        tree = bytearray()
        for left, right in self._nodes:
            tree += pack_node(self._slot(left, node_count), self._slot(right, node_count), self.record_size)
        return bytes(tree), node_count

    @staticmethod
    def _slot(slot, node_count: int) -> int:
        if slot is None:
            return node_count
        if isinstance(slot, int):
            return slot
        return node_count + DATA_SECTION_SEPARATOR_SIZE + slot[1]

    def build(self, node_count: int | None = None, major_version: int = 2) -> bytes:
        """Serialize the database. ``node_count`` overrides the metadata value."""
        tree, actual_count = self.build_tree()
        meta = metadata_map(
            node_count if node_count is not None else actual_count,
            self.record_size,
            self.ip_version,
            self.database_type,
            major_version=major_version,
        )
        return assemble(tree, bytes(self._data), meta)
