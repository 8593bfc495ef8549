"""Exception hierarchy for mmdb-reader."""


class MMDBError(Exception):
    """Base exception for all database errors."""


class IndexOutOfRangeError(MMDBError):
    """A read fell outside the database buffer."""

    def __init__(self, offset: int, length: int, size: int):
        self.offset = offset
        self.length = length
        self.size = size
        super().__init__(f"Read of {length} bytes at offset {offset} exceeds buffer of {size} bytes")


class UnsupportedRecordSizeError(MMDBError):
    def __init__(self, record_size: int):
        self.record_size = record_size
        super().__init__(f"Unsupported record size: {record_size}")


class InvalidFieldTypeError(MMDBError):
    """An extended type byte resolved to a tag below 8."""

    def __init__(self, field_type: int):
        self.field_type = field_type
        super().__init__(f"Invalid extended field type: {field_type}")


class UnknownFieldTypeError(MMDBError):
    def __init__(self, field_type: int):
        self.field_type = field_type
        super().__init__(f"Unknown field type: {field_type}")


class MetadataError(MMDBError):
    """Metadata is missing, mistyped or describes an unsupported format."""


class MetadataNotFoundError(MetadataError):
    pass


class CorruptDatabaseError(MMDBError):
    pass


class DecodingError(MMDBError):
    """A value could not be decoded from its payload bytes."""


class InvalidDatabaseTypeError(MMDBError):
    def __init__(self, database_type: str):
        self.database_type = database_type
        super().__init__(f"Invalid database type: {database_type!r}")


class SearchError(MMDBError):
    """A lookup failed for a reason other than the address being absent."""


class InvalidAddressError(MMDBError, ValueError):
    pass
