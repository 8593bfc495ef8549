import sys

import pytest

import client
from tests.mmdb_writer import MMDBWriter, record, string


@pytest.fixture
def run_client(tmp_path, monkeypatch, capsys):
    """Run the REPL over a database with the given commands, returning its output."""

    def run(writer: MMDBWriter, *commands: str) -> str:
        path = tmp_path / "test.mmdb"
        path.write_bytes(writer.build())
        inputs = iter([*commands, "exit"])
        monkeypatch.setattr(sys, "argv", ["mmdb-client", str(path)])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(inputs))
        client.main()
        return capsys.readouterr().out

    return run


def test_country_command(run_client) -> None:
    writer = MMDBWriter(ip_version=4, record_size=24)
    writer.insert("2.125.160.0/19", record(country=record(iso_code=string("GB"))))

    output = run_client(writer, "country 2.125.160.216", "country 8.8.8.8")

    assert "GB" in output
    assert "No data for 8.8.8.8" in output
    assert "Exiting..." in output


def test_country_command_with_non_map_country(run_client) -> None:
    writer = MMDBWriter(ip_version=4, record_size=24)
    writer.insert("1.0.0.0/8", record(country=string("GB")))

    output = run_client(writer, "country 1.1.1.1", "lookup 1.1.1.1")

    assert "No country for 1.1.1.1" in output
    assert '"country": "GB"' in output
    assert "Exiting..." in output


def test_networks_command(run_client) -> None:
    writer = MMDBWriter(ip_version=4, record_size=24)
    writer.insert("1.0.0.0/8", string("one"))
    writer.insert("10.0.0.0/8", string("ten"))

    output = run_client(writer, "networks 1")

    assert "1.0.0.0/8" in output
    assert "10.0.0.0/8" not in output


def test_networks_command_with_corrupt_record(run_client) -> None:
    writer = MMDBWriter(ip_version=4, record_size=24)
    writer.insert("1.0.0.0/8", string("one"))
    writer.insert_offset("5.6.7.0/24", 10_000)

    output = run_client(writer, "networks", "lookup 1.2.3.4")

    assert "Listing networks failed" in output
    assert '"one"' in output
    assert "Exiting..." in output


def test_invalid_address(run_client) -> None:
    writer = MMDBWriter(ip_version=4, record_size=24)

    output = run_client(writer, "lookup nonsense", "country")

    assert "is not a valid IP address" in output
    assert "Invalid command. Use country <ip>." in output
