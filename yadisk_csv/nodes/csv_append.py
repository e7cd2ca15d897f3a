"""
Yandex Disk CSV: Append Row.

**Conceptual**: A "spreadsheet append row" for a file-based backend. One
invocation downloads the current CSV (if any), learns its header, maps every
input record onto that header, and uploads the whole file back with the new
rows at the end.

**Flow** (strictly sequential, one network call at a time):
    resolve download link -> fetch content | skip (absent file)
    -> parse header | skip -> map records -> compose -> merge
    -> resolve upload link -> upload

Any failure aborts the remaining steps. Everything before the upload is
read-only, so a failure there leaves the remote file untouched. There is no
locking: two invocations writing the same path concurrently race, and the
last upload wins.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from yadisk_csv.config.settings import DEFAULT_BASE_URL, DEFAULT_USER_AGENT, YandexDiskSettings
from yadisk_csv.data.csv_text import (
    Record,
    compose_append_text,
    derive_header,
    first_line,
    map_record,
    merge_csv,
    parse_header_line,
)
from yadisk_csv.nodes.credentials import CREDENTIAL_NAME, YandexDiskCredential
from yadisk_csv.nodes.parameters import NODE_PROPERTIES, CsvAppendConfig, MappingMode
from yadisk_csv.storage.yandex_disk_client import YandexDiskClient, YandexDiskNotFoundError

logger = logging.getLogger(__name__)

OUTPUT_METADATA_KEY = "_ydisk"

NODE_DESCRIPTION: Dict[str, Any] = {
    "displayName": "Yandex Disk CSV: Append Row",
    "name": "yandexDiskCsvAppend",
    "icon": "file:icons/yandex.svg",
    "group": ["transform"],
    "version": 1,
    "description": (
        "Appends one or more rows to a CSV file on Yandex Disk "
        "(an Append Row for file-based spreadsheets)"
    ),
    "defaults": {"name": "Yandex Disk CSV: Append Row"},
    "inputs": ["main"],
    "outputs": ["main"],
    "credentials": [{"name": CREDENTIAL_NAME, "required": True}],
    "properties": NODE_PROPERTIES,
}


@dataclass(frozen=True)
class AppendResult:
    """
    Summary of one append.

    Attributes:
        file_path: Remote path that was written.
        created: True if the file did not exist before this append.
        header: Column order used for the new rows.
        rows_appended: Number of data rows added.
        content: Complete document text that was uploaded.
    """
    file_path: str
    created: bool
    header: List[str]
    rows_appended: int
    content: str


def resolve_columns(
    config: CsvAppendConfig,
    existing_header: Optional[List[str]],
    records: Sequence[Record],
) -> List[str]:
    """
    Decide the column order for this invocation, once, before mapping.

    BY_COLUMNS always uses the configured list. BY_HEADER uses the header
    read from the file, or failing that the key order of the first record.
    """
    if config.mapping_mode is MappingMode.BY_COLUMNS:
        return list(config.columns)
    if existing_header:
        return list(existing_header)
    return derive_header(records)


def append_records(
    client: YandexDiskClient,
    config: CsvAppendConfig,
    records: Sequence[Record],
) -> AppendResult:
    """
    Append records to the remote CSV described by config.

    Args:
        client: Open Yandex Disk client.
        config: Per-invocation options.
        records: Input records, one row each.

    Returns:
        AppendResult describing what was uploaded.

    Raises:
        YandexDiskNotFoundError: If the file is absent and creation is disabled.
        YandexDiskClientError (or subclass): If any remote call fails.
        MalformedHeaderError: If the existing header line cannot be parsed.
        UnicodeError: If the remote file or a record value does not fit
            config.encoding.
    """
    path = config.file_path

    resolution = client.resolve_download(path)
    resolution.raise_for_error()

    if resolution.is_absent and not config.create_if_missing:
        raise YandexDiskNotFoundError(
            f"File '{path}' not found on Yandex Disk and 'Create If Missing' is disabled",
            status_code=resolution.status_code,
            response_text=resolution.message,
        )

    existing = ""
    existing_header = None
    if resolution.is_found:
        existing = client.download_text(resolution.href, encoding=config.encoding)
        logger.info("Fetched %d characters from %s", len(existing), path)
        if config.has_header and existing.strip():
            existing_header = parse_header_line(first_line(existing), config.delimiter)
    else:
        logger.info("%s does not exist yet; it will be created", path)

    columns = resolve_columns(config, existing_header, records)
    rows = [map_record(record, columns) for record in records]

    header_row = None
    if resolution.is_absent and config.should_write_header_on_create:
        header_row = columns

    appended = compose_append_text(rows, config.delimiter, header=header_row)
    content = merge_csv(existing, appended)
    # Unencodable values fail here, before an upload link is issued
    content.encode(config.encoding)

    upload_href = client.resolve_upload(path, overwrite=True)
    client.upload_text(upload_href, content, encoding=config.encoding)
    logger.info("Appended %d rows to %s", len(rows), path)

    return AppendResult(
        file_path=path,
        created=resolution.is_absent,
        header=columns,
        rows_appended=len(rows),
        content=content,
    )


class YandexDiskCsvAppendNode:
    """
    Workflow node wrapping append_records().

    The host calls execute() with the input items, the parameter values and
    the credential mapping. Output items are the inputs echoed back, each with
    an extra "_ydisk" field naming the file that was written.

    Example:
        >>> node = YandexDiskCsvAppendNode()
        >>> node.execute(
        ...     [{"a": 1, "b": 2}],
        ...     {"filePath": "disk:/reports/data.csv"},
        ...     {"accessToken": "y0_..."},
        ... )
        [{'a': 1, 'b': 2, '_ydisk': {'filePath': 'disk:/reports/data.csv'}}]
    """

    description = NODE_DESCRIPTION

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        client_factory: Callable[[YandexDiskSettings], YandexDiskClient] = YandexDiskClient,
    ):
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.client_factory = client_factory

    def execute(
        self,
        items: Sequence[Mapping[str, Any]],
        parameters: Mapping[str, Any],
        credentials: Mapping[str, Any],
    ) -> List[Dict[str, Any]]:
        config = CsvAppendConfig.from_parameters(parameters)
        credential = YandexDiskCredential.from_mapping(credentials)
        settings = YandexDiskSettings(
            access_token=credential.access_token,
            base_url=self.base_url,
            timeout_seconds=self.timeout_seconds,
            user_agent=self.user_agent,
        )

        with self.client_factory(settings) as client:
            result = append_records(client, config, items)

        return [
            {**item, OUTPUT_METADATA_KEY: {"filePath": result.file_path}}
            for item in items
        ]
