"""Database metadata model.

The metadata is a single map value stored after the trailer marker
``\\xab\\xcd\\xefMaxMind.com``, near the end of the file. It fixes the
geometry of everything else:

    [search tree: node_count * node_byte_size][separator: 16][data section]...[marker][metadata map]

Required keys and their exact encoded types:
    binary_format_major_version  uint16
    binary_format_minor_version  uint16
    build_epoch                  uint64
    ip_version                   uint16  (4 or 6)
    record_size                  uint16  (bits per child slot)
    node_count                   uint32
    database_type                utf8 string

Optional keys (type-checked when present):
    languages                    array of strings
    description                  map of string -> string
"""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from exceptions import MetadataError
from models.value import ArrayValue, MapValue, StringValue, UInt16Value, UInt32Value, UInt64Value, Value

METADATA_MARKER = b"\xab\xcd\xefMaxMind.com"

# Zero-filled gap between the search tree and the data section
DATA_SECTION_SEPARATOR_SIZE = 16

# key -> expected value type
REQUIRED_KEYS: dict[str, type[Value]] = {
    "binary_format_major_version": UInt16Value,
    "binary_format_minor_version": UInt16Value,
    "build_epoch": UInt64Value,
    "ip_version": UInt16Value,
    "record_size": UInt16Value,
    "node_count": UInt32Value,
    "database_type": StringValue,
}


class Metadata(BaseModel):
    """Geometry and descriptive fields of an opened database.

    Fields:
        binary_format_major_version: Format major version, must be >= 2
        binary_format_minor_version: Format minor version
        build_epoch: Unix timestamp of the database build
        ip_version: 4 or 6
        record_size: Bits per child slot in a search tree node
        node_count: Number of nodes in the search tree
        database_type: Free-form type string, e.g. "GeoLite2-Country"
        languages: Locale codes the database carries names for
        description: Locale code -> description text
        metadata_start: File offset right after the trailer marker
    """

    model_config = ConfigDict(frozen=True)

    MIN_MAJOR_VERSION: ClassVar[int] = 2

    binary_format_major_version: int
    binary_format_minor_version: int
    build_epoch: int
    ip_version: int
    record_size: int
    node_count: int
    database_type: str
    languages: list[str] = []
    description: dict[str, str] = {}
    metadata_start: int = 0

    @field_validator("binary_format_major_version")
    @classmethod
    def validate_major_version(cls, v: int) -> int:
        if v < cls.MIN_MAJOR_VERSION:
            raise ValueError(f"Unsupported binary format major version {v}, expected >= {cls.MIN_MAJOR_VERSION}")
        return v

    @field_validator("ip_version")
    @classmethod
    def validate_ip_version(cls, v: int) -> int:
        if v not in (4, 6):
            raise ValueError(f"IP version must be 4 or 6, got {v}")
        return v

    @property
    def node_byte_size(self) -> int:
        """Bytes per search tree node (two child slots)."""
        return self.record_size * 2 // 8

    @property
    def search_tree_size(self) -> int:
        return self.node_byte_size * self.node_count

    @property
    def data_section_start(self) -> int:
        return self.search_tree_size + DATA_SECTION_SEPARATOR_SIZE

    @property
    def tree_depth(self) -> int:
        """Maximum number of address bits in the search tree."""
        return 32 if self.ip_version == 4 else 128

    @classmethod
    def from_map(cls, metadata: Value, metadata_start: int = 0) -> "Metadata":
        """Build metadata from the decoded trailer map.

        Raises MetadataError for a non-map value, a missing key, a key with the
        wrong encoded type, or a field that fails validation.
        """
        if not isinstance(metadata, MapValue):
            raise MetadataError(f"Metadata must be a map, got {type(metadata).__name__}")

        fields: dict[str, object] = {}
        for key, expected_type in REQUIRED_KEYS.items():
            item = metadata.get(key)
            if item is None:
                raise MetadataError(f"Missing metadata key: {key}")
            if not isinstance(item, expected_type):
                raise MetadataError(
                    f"Metadata key {key} has type {type(item).__name__}, expected {expected_type.__name__}"
                )
            fields[key] = item.value

        languages = metadata.get("languages")
        if languages is not None:
            if not isinstance(languages, ArrayValue) or not all(isinstance(v, StringValue) for v in languages.value):
                raise MetadataError("Metadata key languages must be an array of strings")
            fields["languages"] = languages.to_python()

        description = metadata.get("description")
        if description is not None:
            if not isinstance(description, MapValue) or not all(
                isinstance(v, StringValue) for v in description.value.values()
            ):
                raise MetadataError("Metadata key description must be a map of strings")
            fields["description"] = description.to_python()

        try:
            return cls(metadata_start=metadata_start, **fields)
        except ValidationError as e:
            raise MetadataError(f"Invalid metadata: {e}") from e
