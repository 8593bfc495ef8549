from models.value import ArrayValue, BooleanValue, BytesValue, UInt32Value, UInt128Value
from tests.mmdb_writer import record, string
from tools.mmdb_inspect import format_value


def test_format_scalars() -> None:
    assert format_value(string("GB")) == ['"GB"']
    assert format_value(UInt32Value(value=5)) == ["5 uint32"]
    assert format_value(BooleanValue(value=True)) == ["True boolean"]
    assert format_value(BytesValue(value=b"\x00\x01\x02")) == ["[3 bytes]"]
    assert format_value(UInt128Value.from_int(1)) == [f"0x{1:032x} uint128"]


def test_format_nested() -> None:
    value = record(iso_code=string("GB"), tags=ArrayValue(value=[string("a")]))

    assert format_value(value) == [
        "{",
        ": iso_code =",
        '  "GB"',
        ": tags =",
        "  [",
        '    "a"',
        "  ]",
        "}",
    ]


def test_format_indent_level() -> None:
    assert format_value(string("x"), level=2) == ['    "x"']
