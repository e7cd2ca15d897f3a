"""
Tests for the CSV append operation and the workflow node wrapper.

**Testing philosophy**: The orchestration is tested against an in-memory fake
client that records every call, so each test can assert both the uploaded
content and the exact sequence of remote calls (in particular, that nothing
is uploaded after a failure). One end-to-end test runs through the real
YandexDiskClient with requests.Session patched.
"""

from unittest.mock import Mock, patch

import pytest

from yadisk_csv.data.csv_text import MalformedHeaderError
from yadisk_csv.nodes.csv_append import (
    NODE_DESCRIPTION,
    OUTPUT_METADATA_KEY,
    YandexDiskCsvAppendNode,
    append_records,
    resolve_columns,
)
from yadisk_csv.nodes.parameters import CsvAppendConfig, MappingMode
from yadisk_csv.storage.yandex_disk_client import (
    DownloadResolution,
    YandexDiskNotFoundError,
    YandexDiskServerError,
)


class FakeDiskClient:
    """
    In-memory stand-in for YandexDiskClient.

    existing=None means the file is absent. download_resolution overrides the
    download link outcome; upload_error makes resolve_upload() raise.
    """

    def __init__(self, existing=None, download_resolution=None, upload_error=None):
        self.existing = existing
        self.download_resolution = download_resolution
        self.upload_error = upload_error
        self.calls = []
        self.uploaded = None
        self.upload_encoding = None
        self.closed = False

    def resolve_download(self, path):
        self.calls.append(("resolve_download", path))
        if self.download_resolution is not None:
            return self.download_resolution
        if self.existing is None:
            return DownloadResolution.absent(path)
        return DownloadResolution.found(path, "https://downloader.local/file")

    def download_text(self, href, encoding="utf-8"):
        self.calls.append(("download_text", href))
        return self.existing

    def resolve_upload(self, path, overwrite=True):
        self.calls.append(("resolve_upload", path, overwrite))
        if self.upload_error is not None:
            raise self.upload_error
        return "https://uploader.local/file"

    def upload_text(self, href, text, encoding="utf-8"):
        self.calls.append(("upload_text", href))
        self.uploaded = text
        self.upload_encoding = encoding

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed = True
        return False


def make_config(**overrides):
    values = {"file_path": "disk:/reports/data.csv"}
    values.update(overrides)
    return CsvAppendConfig(**values)


def call_names(client):
    return [call[0] for call in client.calls]


# ============================================================================
# append_records
# ============================================================================

def test_absent_file_created_with_derived_header():
    client = FakeDiskClient(existing=None)

    result = append_records(client, make_config(), [{"a": 1, "b": 2}, {"a": 3, "b": 4}])

    assert client.uploaded == "a,b\n1,2\n3,4\n"
    assert result.created is True
    assert result.header == ["a", "b"]
    assert result.rows_appended == 2
    assert call_names(client) == ["resolve_download", "resolve_upload", "upload_text"]


def test_existing_file_appends_without_duplicate_header():
    client = FakeDiskClient(existing="a,b\nx,y\n")

    result = append_records(client, make_config(), [{"a": 9, "b": 8}])

    assert client.uploaded == "a,b\nx,y\n9,8\n"
    assert result.created is False
    assert call_names(client) == [
        "resolve_download",
        "download_text",
        "resolve_upload",
        "upload_text",
    ]


def test_existing_file_without_trailing_newline():
    client = FakeDiskClient(existing="a,b\nx,y")

    append_records(client, make_config(), [{"a": 9, "b": 8}])

    assert client.uploaded == "a,b\nx,y\n9,8\n"


def test_existing_header_order_wins_over_record_order():
    client = FakeDiskClient(existing="b,a\n")

    append_records(client, make_config(), [{"a": 1, "b": 2}])

    assert client.uploaded == "b,a\n2,1\n"


def test_existing_header_with_semicolon_delimiter():
    client = FakeDiskClient(existing="date;amount\n2024-01-01;10\n")

    append_records(client, make_config(delimiter=";"), [{"amount": 5, "date": "2024-01-02"}])

    assert client.uploaded == "date;amount\n2024-01-01;10\n2024-01-02;5\n"


def test_by_columns_uses_explicit_order():
    client = FakeDiskClient(existing="x,y\n")
    config = make_config(mapping_mode=MappingMode.BY_COLUMNS, columns=("b", "a"))

    append_records(client, config, [{"a": 1, "b": 2}])

    assert client.uploaded == "x,y\n2,1\n"


def test_by_columns_header_written_on_create():
    client = FakeDiskClient(existing=None)
    config = make_config(mapping_mode=MappingMode.BY_COLUMNS, columns=("b", "a"))

    append_records(client, config, [{"a": 1, "b": 2, "c": 3}])

    assert client.uploaded == "b,a\n2,1\n"


def test_missing_field_yields_empty_cell():
    client = FakeDiskClient(existing="a,b\n")

    append_records(client, make_config(), [{"a": 1}])

    assert client.uploaded == "a,b\n1,\n"


def test_header_derived_once_from_first_record():
    client = FakeDiskClient(existing=None)

    append_records(client, make_config(), [{"a": 1, "b": 2}, {"b": 4, "c": 5}])

    # Second record's extra key is ignored; its missing "a" is empty
    assert client.uploaded == "a,b\n1,2\n,4\n"


def test_no_header_written_when_disabled_on_create():
    client = FakeDiskClient(existing=None)

    append_records(client, make_config(write_header_on_create=False), [{"a": 1, "b": 2}])

    assert client.uploaded == "1,2\n"


def test_no_header_written_when_file_has_no_header():
    client = FakeDiskClient(existing=None)

    append_records(client, make_config(has_header=False), [{"a": 1, "b": 2}])

    assert client.uploaded == "1,2\n"


def test_has_header_false_does_not_parse_existing_first_line():
    client = FakeDiskClient(existing="1,2\n")

    append_records(client, make_config(has_header=False), [{"x": 3, "y": 4}])

    assert client.uploaded == "1,2\n3,4\n"


def test_empty_existing_file_gets_no_header():
    client = FakeDiskClient(existing="")

    result = append_records(client, make_config(), [{"a": 1, "b": 2}])

    assert client.uploaded == "1,2\n"
    assert result.created is False


def test_absent_file_with_create_disabled_aborts_before_upload():
    client = FakeDiskClient(existing=None)

    with pytest.raises(YandexDiskNotFoundError, match="not found") as exc_info:
        append_records(client, make_config(create_if_missing=False), [{"a": 1}])

    assert exc_info.value.status_code == 404
    assert call_names(client) == ["resolve_download"]
    assert client.uploaded is None


def test_transport_error_on_download_aborts_before_upload():
    resolution = DownloadResolution.transport_error("disk:/reports/data.csv", 500, "boom")
    client = FakeDiskClient(download_resolution=resolution)

    with pytest.raises(YandexDiskServerError):
        append_records(client, make_config(), [{"a": 1}])

    assert call_names(client) == ["resolve_download"]


def test_malformed_header_aborts_before_upload():
    client = FakeDiskClient(existing='a,"b\n1,2\n')

    with pytest.raises(MalformedHeaderError):
        append_records(client, make_config(), [{"a": 1}])

    assert "resolve_upload" not in call_names(client)
    assert client.uploaded is None


def test_upload_resolution_failure_propagates():
    client = FakeDiskClient(existing="a\n", upload_error=YandexDiskServerError("down", status_code=502))

    with pytest.raises(YandexDiskServerError):
        append_records(client, make_config(), [{"a": 1}])

    assert client.uploaded is None


def test_upload_uses_configured_encoding():
    client = FakeDiskClient(existing=None)

    append_records(client, make_config(encoding="windows-1251"), [{"имя": "Пётр"}])

    assert client.uploaded == "имя\nПётр\n"
    assert client.upload_encoding == "windows-1251"


def test_unencodable_value_aborts_before_upload_link():
    client = FakeDiskClient(existing=None)

    with pytest.raises(UnicodeEncodeError):
        append_records(client, make_config(encoding="windows-1251"), [{"a": "😀"}])

    assert call_names(client) == ["resolve_download"]
    assert client.uploaded is None


def test_resolve_columns_by_header_prefers_existing():
    config = make_config()
    assert resolve_columns(config, ["x", "y"], [{"a": 1}]) == ["x", "y"]
    assert resolve_columns(config, None, [{"a": 1}]) == ["a"]


# ============================================================================
# Node wrapper
# ============================================================================

def test_node_echoes_items_with_file_path():
    client = FakeDiskClient(existing="a,b\n")
    node = YandexDiskCsvAppendNode(client_factory=lambda settings: client)
    items = [{"a": 1, "b": 2}, {"a": 3}]

    output = node.execute(
        items,
        {"filePath": "disk:/reports/data.csv"},
        {"accessToken": "secret"},
    )

    assert output == [
        {"a": 1, "b": 2, OUTPUT_METADATA_KEY: {"filePath": "disk:/reports/data.csv"}},
        {"a": 3, OUTPUT_METADATA_KEY: {"filePath": "disk:/reports/data.csv"}},
    ]
    # Inputs are not mutated
    assert items == [{"a": 1, "b": 2}, {"a": 3}]
    assert client.uploaded == "a,b\n1,2\n3,\n"
    assert client.closed


def test_node_builds_settings_from_credential():
    captured = {}

    def factory(settings):
        captured["settings"] = settings
        return FakeDiskClient(existing=None)

    node = YandexDiskCsvAppendNode(timeout_seconds=5, client_factory=factory)
    node.execute([{"a": 1}], {"filePath": "disk:/x.csv"}, {"accessToken": "secret"})

    settings = captured["settings"]
    assert settings.access_token == "secret"
    assert settings.authorization_header == "OAuth secret"
    assert settings.timeout_seconds == 5
    assert "secret" not in repr(settings)


def test_node_rejects_missing_token():
    node = YandexDiskCsvAppendNode(client_factory=lambda settings: FakeDiskClient())

    with pytest.raises(ValueError, match="accessToken"):
        node.execute([{"a": 1}], {"filePath": "disk:/x.csv"}, {})


def test_node_not_found_produces_no_output():
    client = FakeDiskClient(existing=None)
    node = YandexDiskCsvAppendNode(client_factory=lambda settings: client)

    with pytest.raises(YandexDiskNotFoundError):
        node.execute(
            [{"a": 1}],
            {"filePath": "disk:/x.csv", "createIfMissing": False},
            {"accessToken": "secret"},
        )
    assert client.uploaded is None
    assert client.closed


def test_node_description_lists_credential_and_properties():
    assert NODE_DESCRIPTION["name"] == "yandexDiskCsvAppend"
    assert NODE_DESCRIPTION["credentials"] == [{"name": "yandexDiskAccessToken", "required": True}]
    names = [prop["name"] for prop in NODE_DESCRIPTION["properties"]]
    assert names == [
        "filePath",
        "delimiter",
        "encoding",
        "hasHeader",
        "mappingMode",
        "columns",
        "createIfMissing",
        "writeHeaderOnCreate",
    ]


def _response(status_code, json_data=None, content=b""):
    response = Mock()
    response.status_code = status_code
    response.text = ""
    response.content = content
    response.json.return_value = json_data
    return response


@patch("yadisk_csv.storage.yandex_disk_client.requests.Session.request")
@patch("yadisk_csv.storage.yandex_disk_client.requests.Session.get")
def test_node_end_to_end_with_http_client(mock_get, mock_request):
    mock_get.return_value = _response(200, {"href": "https://downloader.local/f"})
    mock_request.side_effect = [
        _response(200, content=b"a,b\nx,y\n"),
        _response(200, {"href": "https://uploader.local/f"}),
        _response(201),
    ]

    node = YandexDiskCsvAppendNode(base_url="https://api.test-disk.local/v1/disk")
    node.execute([{"b": 8, "a": 9}], {"filePath": "disk:/data.csv"}, {"accessToken": "secret"})

    assert mock_get.call_args.kwargs["params"] == {"path": "disk:/data.csv"}
    methods = [call.args[0] for call in mock_request.call_args_list]
    assert methods == ["GET", "GET", "PUT"]
    put_call = mock_request.call_args_list[2]
    assert put_call.kwargs["data"] == b"a,b\nx,y\n9,8\n"
    assert put_call.kwargs["headers"] == {"Content-Type": "text/csv; charset=utf-8"}
