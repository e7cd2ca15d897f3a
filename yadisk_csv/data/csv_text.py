"""
CSV text helpers for appending rows to an existing document.

**Conceptual**: The append node treats the remote file as opaque text. It
never rewrites existing rows; it only reads the header line (to learn the
column order) and concatenates newly serialized rows after the existing
content. Everything here is pure string work so it can be tested without any
HTTP.

**Pipeline**:
  1. first_line() + parse_header_line(): discover the header of an existing file.
  2. derive_header() / explicit columns: decide the column order once.
  3. map_record(): project each record onto that column order.
  4. compose_append_text(): serialize rows (optionally preceded by a header).
  5. merge_csv(): join existing content and the new block.

Parsing and serialization go through pandas so quoting rules match the rest
of the CSV tooling in this codebase (minimal quoting, doubled quotes).
"""

import io
import json
import math
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

LINE_TERMINATOR = "\n"
SUPPORTED_DELIMITERS = (",", ";", "\t")

Record = Mapping[str, Any]


class MalformedHeaderError(ValueError):
    """Raised when the first line of an existing CSV cannot be parsed."""
    pass


def first_line(content: str) -> str:
    """Return the text before the first line terminator, without a trailing CR."""
    line = content.split(LINE_TERMINATOR, 1)[0]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def parse_header_line(line: str, delimiter: str = ",") -> Optional[List[str]]:
    """
    Parse a single CSV line into an ordered list of column names.

    A leading UTF-8 byte-order mark is ignored, and values are kept verbatim
    (no NA conversion, so a column literally named "NA" stays "NA").

    Args:
        line: First line of the document, without the line terminator.
        delimiter: Field delimiter (one of ",", ";", tab).

    Returns:
        Column names in file order, or None if the line is blank.

    Raises:
        MalformedHeaderError: If the line cannot be parsed (e.g. an unclosed quote).

    Example:
        >>> parse_header_line('id,"name, full",email')
        ['id', 'name, full', 'email']
    """
    line = line.lstrip("\ufeff")
    if not line.strip():
        return None

    try:
        frame = pd.read_csv(
            io.StringIO(line),
            sep=delimiter,
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise MalformedHeaderError(
            f"Failed to parse CSV header line {line!r} with delimiter {delimiter!r}: {e}"
        ) from e

    if frame.empty:
        return None
    return [str(value) for value in frame.iloc[0].tolist()]


def stringify_value(value: Any) -> str:
    """
    Convert a record value to its cell text.

    None and NaN become the empty string. Booleans and integral floats are
    written the way JSON producers write them ("true", "1"), so records that
    came from JSON round-trip. Nested dicts/lists are written as compact
    JSON; everything else uses str().
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def map_record(record: Record, columns: Sequence[str]) -> List[str]:
    """
    Project a record onto an ordered column list.

    Missing keys are not an error; they yield an empty cell.

    Example:
        >>> map_record({"a": 1}, ["a", "b"])
        ['1', '']
    """
    return [stringify_value(record.get(column)) for column in columns]


def derive_header(records: Sequence[Record]) -> List[str]:
    """
    Derive a header from the key order of the first record.

    Used when no header could be read from the remote file. Dict insertion
    order is preserved, so the result follows the order in which the first
    record's fields were produced.
    """
    if not records:
        return []
    return list(records[0].keys())


def serialize_rows(rows: Sequence[Sequence[str]], delimiter: str = ",") -> str:
    """
    Serialize rows to CSV text, each row terminated by a newline.

    Returns an empty string when there is nothing to write.
    """
    if not rows or not any(len(row) for row in rows):
        return ""

    frame = pd.DataFrame([list(row) for row in rows], dtype=object)
    return frame.to_csv(
        sep=delimiter,
        header=False,
        index=False,
        lineterminator=LINE_TERMINATOR,
    )


def compose_append_text(
    rows: Sequence[Sequence[str]],
    delimiter: str = ",",
    header: Optional[Sequence[str]] = None,
) -> str:
    """
    Build the block of text to append: optional header row, then data rows.

    An empty header is treated as no header.
    """
    text = serialize_rows(rows, delimiter)
    if header:
        text = serialize_rows([list(header)], delimiter) + text
    return text


def ensure_trailing_newline(content: str) -> str:
    """Append a newline unless the content already ends with one."""
    return content if content.endswith(LINE_TERMINATOR) else content + LINE_TERMINATOR


def merge_csv(existing: str, appended: str) -> str:
    """
    Concatenate existing document content with newly composed rows.

    - existing empty: the appended block is the whole document.
    - appended empty: existing content is returned untouched.
    - otherwise: existing content gets exactly one terminating newline
      before the appended block.

    Example:
        >>> merge_csv("a,b\\nx,y", "9,8\\n")
        'a,b\\nx,y\\n9,8\\n'
    """
    if not existing:
        return appended
    if not appended:
        return existing
    return ensure_trailing_newline(existing) + appended
