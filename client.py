import json
import logging
import sys

from db import MMDB, record_country_code
from exceptions import InvalidAddressError, MMDBError, SearchError


def main():
    args = sys.argv[1:]
    if "--verbose" in args:
        args.remove("--verbose")
        logging.basicConfig(level=logging.DEBUG)

    if len(args) != 1:
        print("Usage: mmdb-client <database.mmdb> [--verbose]", file=sys.stderr)
        sys.exit(1)

    try:
        db = MMDB.from_path(args[0])
    except (FileNotFoundError, MMDBError) as e:
        print(f"Cannot open database: {e}", file=sys.stderr)
        sys.exit(1)

    prompt = f"""
    Opened {db.database_type} database (IPv{db.metadata.ip_version}, {db.metadata.node_count} nodes)
    Commands:
        lookup <ip>         - Prints the record for the given address
        country <ip>        - Prints country.iso_code for the given address
        meta                - Prints database metadata
        networks [n]        - Prints the first n networks with data (default 10)
        exit                - Exits the program
    """
    print(prompt)

    while True:
        try:
            command = input("> ").strip()
            if not command:
                continue
            if command.lower() == "exit":
                print("Exiting...")
                break

            parts = command.split()
            action = parts[0].lower()
            argument = parts[1] if len(parts) > 1 else None

            if action in ("lookup", "country"):
                if argument is None:
                    print(f"Invalid command. Use {action} <ip>.")
                    continue
                try:
                    record = db.get(argument)
                except InvalidAddressError as e:
                    print(e)
                    continue
                except SearchError as e:
                    print(f"Lookup failed: {e}")
                    continue
                if record is None:
                    print(f"No data for {argument}")
                elif action == "lookup":
                    print(json.dumps(record.to_python(), indent=2, default=repr))
                else:
                    print(record_country_code(record) or f"No country for {argument}")
            elif action == "meta":
                print(db.metadata.model_dump_json(indent=2))
            elif action == "networks":
                limit = int(argument) if argument and argument.isdigit() else 10
                try:
                    for i, (network, _) in enumerate(db.networks()):
                        if i >= limit:
                            break
                        print(network)
                except SearchError as e:
                    print(f"Listing networks failed: {e}")
            else:
                print("Unknown command.")
        except (KeyboardInterrupt, EOFError):
            print("\nExiting...")
            break


if __name__ == "__main__":
    main()
