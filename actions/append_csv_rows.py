#!/usr/bin/env python3
"""
Append records to a CSV file on Yandex Disk.

**Purpose**: Runs the CSV append node outside a workflow host. Records are
read from a JSON array or an NDJSON file and appended as rows to the remote
CSV, exactly as the node would do inside a workflow.

**Usage**:
    python actions/append_csv_rows.py disk:/reports/data.csv --records rows.json
    python actions/append_csv_rows.py disk:/reports/data.csv --records rows.ndjson --delimiter ";"
    cat rows.ndjson | python actions/append_csv_rows.py disk:/reports/data.csv --records -
    python actions/append_csv_rows.py disk:/log.csv --records rows.json --columns date,amount

**What this script does**:
  1. Parse command line arguments (path, records file, CSV options)
  2. Load Yandex Disk settings from environment (.env file)
  3. Read records from the file (or stdin)
  4. Download, merge and re-upload the remote CSV
  5. Print summary (rows appended, header used, whether the file was created)

**Requirements**:
  - YANDEX_DISK_ACCESS_TOKEN set in .env file
  - Network access to cloud-api.yandex.net

**Example output**:
    $ python actions/append_csv_rows.py disk:/reports/data.csv --records rows.json
    Loading Yandex Disk settings from environment...
    Appending 2 record(s) to disk:/reports/data.csv...
      ✓ Header: date, amount
      ✓ Appended 2 rows to existing file
    Done!
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, TextIO

import requests

# Add project root to Python path so we can import yadisk_csv without installing it
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from yadisk_csv.config.settings import get_settings
from yadisk_csv.data.csv_text import MalformedHeaderError
from yadisk_csv.nodes.csv_append import append_records
from yadisk_csv.nodes.parameters import CsvAppendConfig, MappingMode, parse_column_list
from yadisk_csv.storage.yandex_disk_client import (
    YandexDiskAuthenticationError,
    YandexDiskClient,
    YandexDiskClientError,
    YandexDiskNotFoundError,
)

DELIMITER_CHOICES = {",": ",", ";": ";", "tab": "\t"}


def parse_args(argv=None):
    """
    Parse command line arguments.

    Returns:
        Namespace with attributes: path, records, delimiter, encoding,
        no_header, columns, no_create, no_header_on_create, verbose.
    """
    parser = argparse.ArgumentParser(
        description="Append records to a CSV file on Yandex Disk",
        epilog="""
Examples:
  # Append rows from a JSON array, mapping by the file's header
  python actions/append_csv_rows.py disk:/reports/data.csv --records rows.json

  # Semicolon-separated file, explicit column order
  python actions/append_csv_rows.py disk:/reports/data.csv --records rows.json \\
      --delimiter ";" --columns date,amount

  # Fail instead of creating the file when it does not exist
  python actions/append_csv_rows.py disk:/reports/data.csv --records rows.json --no-create
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "path",
        help="Remote file path, e.g. disk:/reports/data.csv",
    )

    parser.add_argument(
        "--records",
        required=True,
        help="JSON array or NDJSON file with one record per row ('-' for stdin)",
    )

    parser.add_argument(
        "--delimiter",
        choices=sorted(DELIMITER_CHOICES),
        default=",",
        help="Field delimiter (default: ',')",
    )

    parser.add_argument(
        "--encoding",
        choices=["utf-8", "windows-1251"],
        default="utf-8",
        help="File text encoding (default: utf-8)",
    )

    parser.add_argument(
        "--no-header",
        action="store_true",
        help="The file has no header row",
    )

    parser.add_argument(
        "--columns",
        default="",
        help="Comma-separated explicit column order (switches to by-columns mapping)",
    )

    parser.add_argument(
        "--no-create",
        action="store_true",
        help="Fail if the file does not exist instead of creating it",
    )

    parser.add_argument(
        "--no-header-on-create",
        action="store_true",
        help="Do not write a header row when creating the file",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log each request",
    )

    return parser.parse_args(argv)


def read_records(stream: TextIO) -> List[Dict[str, Any]]:
    """
    Read records from a JSON array or NDJSON text stream.

    Blank NDJSON lines are skipped. Every record must be a JSON object.

    Raises:
        ValueError: If the text is not valid JSON/NDJSON or holds non-objects.
    """
    text = stream.read()
    stripped = text.strip()
    if not stripped:
        return []

    if stripped.startswith("["):
        try:
            records = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
    else:
        records = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_number}: {e}") from e

    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(
                f"Record {index} is a {type(record).__name__}, expected a JSON object"
            )
    return records


def build_config(args) -> CsvAppendConfig:
    columns = parse_column_list(args.columns)
    return CsvAppendConfig(
        file_path=args.path,
        delimiter=DELIMITER_CHOICES[args.delimiter],
        encoding=args.encoding,
        has_header=not args.no_header,
        mapping_mode=MappingMode.BY_COLUMNS if columns else MappingMode.BY_HEADER,
        columns=columns,
        create_if_missing=not args.no_create,
        write_header_on_create=not args.no_header_on_create,
    )


def main(argv=None):
    """
    Main entry point for the script.

    **Exit codes**:
      - 0: Success
      - 1: Configuration or input error (missing token, bad records file,
           file absent with --no-create, malformed header, text that does
           not fit --encoding)
      - 2: Remote failure (authentication, server, network)
    """
    try:
        args = parse_args(argv)

        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        try:
            config = build_config(args)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        try:
            if args.records == "-":
                records = read_records(sys.stdin)
            else:
                with open(args.records, encoding="utf-8") as stream:
                    records = read_records(stream)
        except (OSError, ValueError) as e:
            print(f"Error: Could not read records: {e}", file=sys.stderr)
            sys.exit(1)

        print("Loading Yandex Disk settings from environment...")
        try:
            settings = get_settings(require_yandex_disk=True)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            print("", file=sys.stderr)
            print("Please set YANDEX_DISK_ACCESS_TOKEN in your .env file:", file=sys.stderr)
            print("  YANDEX_DISK_ACCESS_TOKEN=your_token_here", file=sys.stderr)
            sys.exit(1)

        print(f"Appending {len(records)} record(s) to {config.file_path}...")

        try:
            with YandexDiskClient(settings.yandex_disk) as client:
                result = append_records(client, config, records)

        except YandexDiskNotFoundError as e:
            print(f"  ✗ {e}", file=sys.stderr)
            sys.exit(1)

        except MalformedHeaderError as e:
            print(f"  ✗ {e}", file=sys.stderr)
            sys.exit(1)

        except UnicodeError as e:
            print(f"  ✗ Text does not fit encoding {config.encoding}: {e}", file=sys.stderr)
            sys.exit(1)

        except YandexDiskAuthenticationError as e:
            print(f"Error: Authentication failed: {e}", file=sys.stderr)
            print("Check YANDEX_DISK_ACCESS_TOKEN in .env file", file=sys.stderr)
            sys.exit(2)

        except YandexDiskClientError as e:
            print(f"  ✗ Yandex Disk request failed: {e}", file=sys.stderr)
            sys.exit(2)

        except requests.Timeout as e:
            print(f"  ✗ {e}", file=sys.stderr)
            sys.exit(2)

        print(f"  ✓ Header: {', '.join(result.header) if result.header else '(none)'}")
        if result.created:
            print(f"  ✓ Created {result.file_path} with {result.rows_appended} rows")
        else:
            print(f"  ✓ Appended {result.rows_appended} rows to existing file")
        print("Done!")

    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting...")
        sys.exit(130)


if __name__ == "__main__":
    main()
