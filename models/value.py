"""Tagged values stored in the data and metadata sections.

Every encoded value starts with a control byte:

    bits 7..5  field type (0 = extended, type is next byte + 7)
    bits 4..0  payload size (29/30/31 escape to 1/2/3 extra size bytes)

Field types:
    1  pointer      6  uint32      11  array
    2  utf8 string  7  map         12  data cache container
    3  double       8  int32       13  end marker
    4  bytes        9  uint64      14  boolean
    5  uint16      10  uint128     15  float

Pointers are resolved during decoding and never appear as values.
"""

from enum import IntEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

UINT64_MAX = 2**64 - 1


class FieldType(IntEnum):
    """Field type tags as found in control bytes."""

    EXTENDED = 0
    POINTER = 1
    STRING = 2
    DOUBLE = 3
    BYTES = 4
    UINT16 = 5
    UINT32 = 6
    MAP = 7
    INT32 = 8
    UINT64 = 9
    UINT128 = 10
    ARRAY = 11
    CONTAINER = 12
    END_MARKER = 13
    BOOLEAN = 14
    FLOAT = 15


class Value(BaseModel):
    """Base class for decoded values. Instances are immutable."""

    model_config = ConfigDict(frozen=True)

    FIELD_TYPE: ClassVar[FieldType]

    def to_python(self) -> Any:
        """Convert to plain Python data (str, int, float, bytes, bool, dict, list)."""
        return self.value


class StringValue(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.STRING

    value: str


class DoubleValue(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.DOUBLE

    value: float


class FloatValue(Value):
    """Single precision float, held as the nearest Python float."""

    FIELD_TYPE: ClassVar[FieldType] = FieldType.FLOAT

    value: float


class BytesValue(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.BYTES

    value: bytes


class UInt16Value(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.UINT16

    value: int = Field(ge=0, le=0xFFFF)


class UInt32Value(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.UINT32

    value: int = Field(ge=0, le=0xFFFFFFFF)


class UInt64Value(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.UINT64

    value: int = Field(ge=0, le=UINT64_MAX)


class UInt128Value(Value):
    """128-bit unsigned integer split into two 64-bit halves."""

    FIELD_TYPE: ClassVar[FieldType] = FieldType.UINT128

    high: int = Field(ge=0, le=UINT64_MAX)
    low: int = Field(ge=0, le=UINT64_MAX)

    @classmethod
    def from_int(cls, value: int) -> "UInt128Value":
        return cls(high=value >> 64, low=value & UINT64_MAX)

    @property
    def value(self) -> int:
        return (self.high << 64) | self.low


class Int32Value(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.INT32

    value: int = Field(ge=-(2**31), le=2**31 - 1)


class BooleanValue(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.BOOLEAN

    value: bool


class MapValue(Value):
    """String-keyed mapping. Key order carries no meaning."""

    FIELD_TYPE: ClassVar[FieldType] = FieldType.MAP

    value: dict[str, Value]

    def __getitem__(self, key: str) -> Value:
        return self.value[key]

    def __contains__(self, key: str) -> bool:
        return key in self.value

    def get(self, key: str, default: Value | None = None) -> Value | None:
        return self.value.get(key, default)

    def to_python(self) -> dict[str, Any]:
        return {key: item.to_python() for key, item in self.value.items()}


class ArrayValue(Value):
    FIELD_TYPE: ClassVar[FieldType] = FieldType.ARRAY

    value: list[Value]

    def __len__(self) -> int:
        return len(self.value)

    def __getitem__(self, index: int) -> Value:
        return self.value[index]

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.value]
