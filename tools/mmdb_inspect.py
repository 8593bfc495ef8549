#!/usr/bin/env python3
"""Database inspection tool for debugging and validation.

Usage:
    uv run python tools/mmdb_inspect.py --db ./GeoLite2-Country.mmdb --summary
    uv run python tools/mmdb_inspect.py --db ./GeoLite2-Country.mmdb --lookup 2.125.160.216
    uv run python tools/mmdb_inspect.py --db ./GeoLite2-Country.mmdb --node 0
    uv run python tools/mmdb_inspect.py --db ./GeoLite2-Country.mmdb --networks 20
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from db import MMDB
from exceptions import InvalidAddressError, MMDBError
from models.value import ArrayValue, BytesValue, MapValue, StringValue, UInt128Value, Value
from storage.search_tree import Failed, Found, NotFound, Partial


def format_value(value: Value, level: int = 0) -> list[str]:
    """Render a value as indented lines, two spaces per level."""
    indent = "  " * level
    match value:
        case StringValue():
            return [f'{indent}"{value.value}"']
        case MapValue():
            lines = [f"{indent}{{"]
            for key, item in value.value.items():
                lines.append(f"{indent}: {key} =")
                lines.extend(format_value(item, level + 1))
            lines.append(f"{indent}}}")
            return lines
        case ArrayValue():
            lines = [f"{indent}["]
            for item in value.value:
                lines.extend(format_value(item, level + 1))
            lines.append(f"{indent}]")
            return lines
        case UInt128Value():
            return [f"{indent}0x{value.value:032x} {value.FIELD_TYPE.name.lower()}"]
        case BytesValue():
            return [f"{indent}[{len(value.value)} bytes]"]
        case _:
            return [f"{indent}{value.value} {value.FIELD_TYPE.name.lower()}"]


def print_summary(db: MMDB) -> None:
    """Print metadata and geometry."""
    meta = db.metadata
    built = datetime.fromtimestamp(meta.build_epoch, tz=timezone.utc)

    print("=" * 50)
    print("DATABASE SUMMARY")
    print("=" * 50)
    print()

    print("=== Metadata ===")
    print(f"  Database Type: {meta.database_type}")
    print(f"  Format Version: {meta.binary_format_major_version}.{meta.binary_format_minor_version}")
    print(f"  Build Epoch: {meta.build_epoch} ({built.isoformat()})")
    print(f"  IP Version: {meta.ip_version}")
    print(f"  Languages: {', '.join(meta.languages) or '-'}")
    for locale, text in meta.description.items():
        print(f"  Description [{locale}]: {text}")
    print()

    print("=== Search Tree ===")
    print(f"  Record Size: {meta.record_size} bits")
    print(f"  Node Count: {meta.node_count}")
    print(f"  Node Size: {meta.node_byte_size} bytes")
    print(f"  Tree Size: {meta.search_tree_size} bytes")
    print(f"  Data Section Start: {meta.data_section_start}")
    print(f"  Metadata Start: {meta.metadata_start}")
    print(f"  IPv4 Start Node: {db.ipv4_start_node}")
    print()


def print_lookup(db: MMDB, address: str) -> None:
    """Print the search result for one address."""
    print(f"=== Lookup {address} ===")
    try:
        result = db.lookup_address(address)
    except InvalidAddressError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    match result:
        case Found(value=value):
            print("\n".join(format_value(value, level=1)))
        case NotFound():
            print("  Not found")
        case Partial(node=node):
            print(f"  Partial result at node {node}")
        case Failed(reason=reason):
            print(f"  FAILED: {reason}")
    print()


def print_node(db: MMDB, node: int) -> None:
    """Print both child slots of a node and what they point at."""
    tree = db.tree
    node_count = db.metadata.node_count
    if not 0 <= node < node_count:
        print(f"Error: node must be in [0, {node_count})", file=sys.stderr)
        sys.exit(1)

    print(f"=== Node {node} ===")
    for side, name in ((0, "Left"), (1, "Right")):
        record = tree.read_node(node, side)
        if record < node_count:
            target = f"node {record}"
        elif record == node_count:
            target = "not found"
        else:
            try:
                target = f"data at offset {tree.data_offset(record)}"
            except MMDBError as e:
                target = f"INVALID ({e})"
        print(f"  {name}: {record} -> {target}")
    print()


def print_networks(db: MMDB, limit: int) -> None:
    """Print the first ``limit`` networks with data."""
    print("=== Networks ===")
    count = 0
    for network, value in db.networks():
        if count >= limit:
            print(f"  ... (stopped after {limit})")
            break
        first_line = format_value(value)[0].strip()
        print(f"  {network}  {first_line}{' ...' if isinstance(value, (MapValue, ArrayValue)) else ''}")
        count += 1
    print()


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect MaxMind DB files")
    parser.add_argument("--db", required=True, help="Path to database file")
    parser.add_argument("--summary", action="store_true", help="Show metadata and geometry")
    parser.add_argument("--lookup", metavar="ADDRESS", help="Look up an IPv4 or IPv6 address")
    parser.add_argument("--node", type=int, help="Show a search tree node")
    parser.add_argument("--networks", type=int, metavar="N", help="List the first N networks with data")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Error: Database file not found: {db_path}", file=sys.stderr)
        sys.exit(1)

    try:
        db = MMDB.from_path(db_path)
    except MMDBError as e:
        print(f"Error: Cannot open database: {e}", file=sys.stderr)
        sys.exit(1)

    with db:
        if args.summary:
            print_summary(db)
        elif args.lookup is not None:
            print_lookup(db, args.lookup)
        elif args.node is not None:
            print_node(db, args.node)
        elif args.networks is not None:
            print_networks(db, args.networks)
        else:
            print_summary(db)


if __name__ == "__main__":
    main()
