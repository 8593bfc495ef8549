"""Reader configuration."""

from pydantic import BaseModel, ConfigDict, Field

# Nesting levels (containers and pointer hops) allowed within one decoded value
DEFAULT_MAX_DECODE_DEPTH = 256


class ReaderOptions(BaseModel):
    """Tunable parameters for opening a database.

    Attributes:
        max_decode_depth: Recursion budget for a single decode. Exhausting it
            raises DecodingError, which stops pointer cycles in corrupt files.
        database_type: When set, opening a database whose metadata declares a
            different database_type fails with InvalidDatabaseTypeError.
    """

    model_config = ConfigDict(frozen=True)

    max_decode_depth: int = Field(default=DEFAULT_MAX_DECODE_DEPTH, gt=0)
    database_type: str | None = None
