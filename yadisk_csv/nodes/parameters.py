"""
Node parameters: the property descriptors shown by the workflow host and the
typed configuration built from them for one invocation.

**Conceptual**: The host renders NODE_PROPERTIES as a form and hands the
filled-in values back as a plain mapping keyed by property name
("filePath", "delimiter", ...). CsvAppendConfig.from_parameters() turns that
mapping into a frozen, validated object, applying the same defaults the form
shows. The config is read once per invocation and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from yadisk_csv.data.csv_text import SUPPORTED_DELIMITERS

SUPPORTED_ENCODINGS = ("utf-8", "windows-1251")


class MappingMode(str, Enum):
    """How a record's values are ordered into a row."""
    BY_HEADER = "byHeader"
    BY_COLUMNS = "byColumns"


NODE_PROPERTIES: List[Dict[str, Any]] = [
    {
        "displayName": "File Path",
        "name": "filePath",
        "type": "string",
        "default": "disk:/path/to/file.csv",
        "description": "Path to the file on Yandex Disk, e.g. disk:/reports/data.csv",
    },
    {
        "displayName": "Delimiter",
        "name": "delimiter",
        "type": "options",
        "options": [
            {"name": "Comma (,)", "value": ","},
            {"name": "Semicolon (;)", "value": ";"},
            {"name": "Tab (\\t)", "value": "\t"},
        ],
        "default": ",",
    },
    {
        "displayName": "Encoding",
        "name": "encoding",
        "type": "options",
        "options": [
            {"name": "UTF-8", "value": "utf-8"},
            {"name": "Windows-1251", "value": "windows-1251"},
        ],
        "default": "utf-8",
        "description": "UTF-8 suits Cyrillic text in most cases. Windows-1251 is for legacy files.",
    },
    {
        "displayName": "Has Header",
        "name": "hasHeader",
        "type": "boolean",
        "default": True,
        "description": "The first line of the CSV holds the column names",
    },
    {
        "displayName": "Mapping Mode",
        "name": "mappingMode",
        "type": "options",
        "options": [
            {"name": "Auto-map by Header", "value": MappingMode.BY_HEADER.value},
            {"name": "By Explicit Columns", "value": MappingMode.BY_COLUMNS.value},
        ],
        "default": MappingMode.BY_HEADER.value,
    },
    {
        "displayName": "Columns (order)",
        "name": "columns",
        "type": "string",
        "default": "",
        "description": "Comma-separated column names, used with By Explicit Columns",
        "displayOptions": {"show": {"mappingMode": [MappingMode.BY_COLUMNS.value]}},
    },
    {
        "displayName": "Create If Missing",
        "name": "createIfMissing",
        "type": "boolean",
        "default": True,
    },
    {
        "displayName": "Write Header If Creating",
        "name": "writeHeaderOnCreate",
        "type": "boolean",
        "default": True,
        "displayOptions": {"show": {"createIfMissing": [True]}},
    },
]

PROPERTY_DEFAULTS: Dict[str, Any] = {prop["name"]: prop["default"] for prop in NODE_PROPERTIES}


def parse_column_list(columns_csv: str) -> Tuple[str, ...]:
    """
    Split a comma-separated column list, trimming names and dropping blanks.

    Example:
        >>> parse_column_list(" b, a ,,")
        ('b', 'a')
    """
    names = (name.strip() for name in (columns_csv or "").split(","))
    return tuple(name for name in names if name)


@dataclass(frozen=True)
class CsvAppendConfig:
    """
    Per-invocation options of the CSV append node.

    Attributes:
        file_path: Remote path, e.g. "disk:/reports/data.csv".
        delimiter: One of ",", ";", "\\t".
        encoding: Text encoding label used to decode, encode and tag the file.
        has_header: Whether the first line of the file holds column names.
        mapping_mode: BY_HEADER or BY_COLUMNS.
        columns: Explicit column order (BY_COLUMNS only).
        create_if_missing: Treat an absent file as empty instead of failing.
        write_header_on_create: Emit a header row when creating the file.
    """
    file_path: str
    delimiter: str = ","
    encoding: str = "utf-8"
    has_header: bool = True
    mapping_mode: MappingMode = MappingMode.BY_HEADER
    columns: Tuple[str, ...] = ()
    create_if_missing: bool = True
    write_header_on_create: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.file_path or not self.file_path.strip():
            raise ValueError("filePath is required")
        if self.delimiter not in SUPPORTED_DELIMITERS:
            raise ValueError(
                f"Unsupported delimiter {self.delimiter!r}. "
                f"Expected one of: {', '.join(repr(d) for d in SUPPORTED_DELIMITERS)}"
            )
        if self.encoding not in SUPPORTED_ENCODINGS:
            raise ValueError(
                f"Unsupported encoding '{self.encoding}'. "
                f"Expected one of: {', '.join(SUPPORTED_ENCODINGS)}"
            )
        if not isinstance(self.mapping_mode, MappingMode):
            raise ValueError(f"mapping_mode must be a MappingMode, got: {self.mapping_mode!r}")
        if self.mapping_mode is MappingMode.BY_COLUMNS and not self.columns:
            raise ValueError("Mapping mode 'byColumns' requires at least one column name")

    @property
    def should_write_header_on_create(self) -> bool:
        return self.create_if_missing and self.has_header and self.write_header_on_create

    @classmethod
    def from_parameters(cls, parameters: Mapping[str, Any]) -> "CsvAppendConfig":
        """
        Build a config from the host's parameter mapping.

        Missing parameters fall back to the descriptor defaults. An empty
        encoding falls back to "utf-8".

        Raises:
            ValueError: If a value is unsupported (see __post_init__).
        """
        values = {**PROPERTY_DEFAULTS, **dict(parameters)}

        try:
            mapping_mode = MappingMode(values["mappingMode"])
        except ValueError:
            raise ValueError(
                f"Unsupported mapping mode '{values['mappingMode']}'. "
                f"Expected one of: {', '.join(m.value for m in MappingMode)}"
            )

        return cls(
            file_path=str(values["filePath"] or "").strip(),
            delimiter=values["delimiter"],
            encoding=values["encoding"] or "utf-8",
            has_header=bool(values["hasHeader"]),
            mapping_mode=mapping_mode,
            columns=parse_column_list(values["columns"]),
            create_if_missing=bool(values["createIfMissing"]),
            write_header_on_create=bool(values["writeHeaderOnCreate"]),
        )
