"""Pydantic models for values, metadata and reader options."""

from models.config import ReaderOptions
from models.metadata import METADATA_MARKER, Metadata
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

__all__ = [
    "ArrayValue",
    "BooleanValue",
    "BytesValue",
    "DoubleValue",
    "FieldType",
    "FloatValue",
    "Int32Value",
    "MapValue",
    "StringValue",
    "UInt16Value",
    "UInt32Value",
    "UInt64Value",
    "UInt128Value",
    "Value",
    "Metadata",
    "METADATA_MARKER",
    "ReaderOptions",
]
