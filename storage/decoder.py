"""Decoder for tagged values in the data and metadata sections.

Control byte layout (see models.value for the type table):

    [type:3][size:5]                         types 1-7
    [000][size:5][type-7:8]                  extended types 8-15

Size field:
    0-28   literal size
    29     29 + next byte
    30     285 + next 2 bytes (big-endian)
    31     65821 + next 3 bytes (big-endian)

Pointer control byte: [001][size class:2][high:3], followed by
size class + 1 bytes:

    class  bytes  value                          added base
    0      1      high << 8  | b0                0
    1      2      high << 16 | b0 b1             2048
    2      3      high << 24 | b0 b1 b2          526336
    3      4      b0 b1 b2 b3 (high ignored)     0

The target is pointer_base + value + base, where pointer_base is the start of
the data section (or of the metadata map). Pointers never chain relative to
each other.
"""

import struct
from collections.abc import Callable

from exceptions import DecodingError, InvalidFieldTypeError, UnknownFieldTypeError
from models.config import DEFAULT_MAX_DECODE_DEPTH
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
from storage.buffer import ByteStore

POINTER_BASE_OFFSETS = (0, 2048, 526336, 0)

# size field value -> (extra size bytes, base added to them)
SIZE_ESCAPES = {29: (1, 29), 30: (2, 285), 31: (3, 65821)}

# Largest payload (bytes) accepted for each integer type
MAX_INT_WIDTHS = {
    FieldType.UINT16: 2,
    FieldType.UINT32: 4,
    FieldType.INT32: 4,
    FieldType.UINT64: 8,
    FieldType.UINT128: 16,
}


def decode_uint(data: bytes) -> int:
    """Big-endian unsigned integer, most significant byte first. Empty is 0."""
    return int.from_bytes(data, "big")


def decode_int32(data: bytes) -> int:
    """Big-endian two's complement after left-padding to 4 bytes."""
    return int.from_bytes(data.rjust(4, b"\x00"), "big", signed=True)


def decode_uint128(data: bytes) -> tuple[int, int]:
    """Split a payload of up to 16 bytes into (high, low) 64-bit halves."""
    padded = data.rjust(16, b"\x00")
    return decode_uint(padded[:8]), decode_uint(padded[8:])


def decode_size(control_byte: int, extra: bytes) -> int:
    """Payload size from the control byte and the escape bytes that follow it."""
    size = control_byte & 0x1F
    if size < 29:
        return size
    _, base = SIZE_ESCAPES[size]
    return base + (decode_uint(extra) & 0x0FFFFFFF)


def size_escape_length(control_byte: int) -> int:
    """Number of extra size bytes following the control byte."""
    size = control_byte & 0x1F
    return SIZE_ESCAPES[size][0] if size >= 29 else 0


def decode_pointer(control_byte: int, payload: bytes) -> int:
    """Pointer value relative to the pointer base (payload is size class + 1 bytes)."""
    size_class = (control_byte >> 3) & 0x3
    if size_class == 3:
        value = decode_uint(payload)
    else:
        value = ((control_byte & 0x7) << (8 * len(payload))) | decode_uint(payload)
    return value + POINTER_BASE_OFFSETS[size_class]


def _decode_string(payload: bytes) -> StringValue:
    try:
        return StringValue(value=payload.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DecodingError(f"Invalid UTF-8 string: {payload[:32]!r}") from e


def _decode_double(payload: bytes) -> DoubleValue:
    if len(payload) != 8:
        raise DecodingError(f"Double must be 8 bytes, got {len(payload)}")
    return DoubleValue(value=struct.unpack(">d", payload)[0])


def _decode_float(payload: bytes) -> FloatValue:
    if len(payload) != 4:
        raise DecodingError(f"Float must be 4 bytes, got {len(payload)}")
    return FloatValue(value=struct.unpack(">f", payload)[0])


def _decode_uint128(payload: bytes) -> UInt128Value:
    high, low = decode_uint128(payload)
    return UInt128Value(high=high, low=low)


PRIMITIVE_DECODERS: dict[FieldType, Callable[[bytes], Value]] = {
    FieldType.STRING: _decode_string,
    FieldType.DOUBLE: _decode_double,
    FieldType.FLOAT: _decode_float,
    FieldType.BYTES: lambda payload: BytesValue(value=payload),
    FieldType.UINT16: lambda payload: UInt16Value(value=decode_uint(payload)),
    FieldType.UINT32: lambda payload: UInt32Value(value=decode_uint(payload)),
    FieldType.UINT64: lambda payload: UInt64Value(value=decode_uint(payload)),
    FieldType.UINT128: _decode_uint128,
    FieldType.INT32: lambda payload: Int32Value(value=decode_int32(payload)),
}


class Decoder:
    """Decodes tagged values out of a ByteStore.

    Each map entry, array element and pointer hop spends one unit of the
    ``max_depth`` budget; running out raises DecodingError. Well-formed
    files never get close, but a pointer that (directly or not) points at
    itself would otherwise recurse forever.
    """

    def __init__(self, store: ByteStore, max_depth: int = DEFAULT_MAX_DECODE_DEPTH):
        self.store = store
        self.max_depth = max_depth

    def decode(self, offset: int, pointer_base: int) -> tuple[Value, int]:
        """Decode one value at ``offset``.

        Returns the value and the offset just past its encoding. For a pointer
        that is the byte after the pointer, not after the pointed-to value.
        """
        return self._decode(offset, pointer_base, self.max_depth)

    def _decode(self, offset: int, pointer_base: int, budget: int) -> tuple[Value, int]:
        if budget <= 0:
            raise DecodingError(f"Maximum data structure depth exceeded at offset {offset}")

        control_byte = self.store.byte_at(offset)
        offset += 1
        type_num = control_byte >> 5

        if type_num == FieldType.POINTER:
            payload_size = ((control_byte >> 3) & 0x3) + 1
            payload = self.store.read(offset, payload_size)
            target = pointer_base + decode_pointer(control_byte, payload)
            value, _ = self._decode(target, pointer_base, budget - 1)
            return value, offset + payload_size

        if type_num == FieldType.EXTENDED:
            type_num = self.store.byte_at(offset) + 7
            offset += 1
            if type_num < 8:
                raise InvalidFieldTypeError(type_num)

        try:
            field_type = FieldType(type_num)
        except ValueError:
            raise UnknownFieldTypeError(type_num) from None

        escape_length = size_escape_length(control_byte)
        size = decode_size(control_byte, self.store.read(offset, escape_length))
        offset += escape_length

        match field_type:
            case FieldType.MAP:
                return self._decode_map(size, offset, pointer_base, budget)
            case FieldType.ARRAY:
                return self._decode_array(size, offset, pointer_base, budget)
            case FieldType.BOOLEAN:
                # No payload, the size field is the value
                return BooleanValue(value=size != 0), offset

        decode_primitive = PRIMITIVE_DECODERS.get(field_type)
        if decode_primitive is None:
            raise UnknownFieldTypeError(field_type)

        max_width = MAX_INT_WIDTHS.get(field_type)
        if max_width is not None and size > max_width:
            raise DecodingError(f"{field_type.name} payload of {size} bytes exceeds {max_width} bytes")

        payload = self.store.read(offset, size)
        return decode_primitive(payload), offset + size

    def _decode_map(self, size: int, offset: int, pointer_base: int, budget: int) -> tuple[MapValue, int]:
        entries: dict[str, Value] = {}
        for _ in range(size):
            key, offset = self._decode(offset, pointer_base, budget - 1)
            if not isinstance(key, StringValue):
                raise DecodingError(f"Map key is not a string at offset {offset}")
            value, offset = self._decode(offset, pointer_base, budget - 1)
            entries[key.value] = value
        return MapValue(value=entries), offset

    def _decode_array(self, size: int, offset: int, pointer_base: int, budget: int) -> tuple[ArrayValue, int]:
        items: list[Value] = []
        for _ in range(size):
            item, offset = self._decode(offset, pointer_base, budget - 1)
            items.append(item)
        return ArrayValue(value=items), offset
