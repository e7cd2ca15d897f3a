"""
HTTP client for the Yandex Disk REST API.

**Conceptual**: This module is a thin wrapper around the four HTTP calls the
CSV append node needs: resolve a download link, fetch the file body, resolve
an upload link, and PUT the new body. It handles authentication, status code
mapping and JSON parsing. It does NOT know anything about CSV - that lives in
yadisk_csv.data.csv_text and the node.

**Link resolution**: Yandex Disk never serves file content from the API host
directly. Each transfer starts with a GET that returns a short-lived "href";
the content is then read from (or written to) that href. Download and upload
links are one-shot and must not be cached across invocations.

**Absent files**: a 404 from the download-link endpoint is an expected outcome
for the append node (the file may be created). resolve_download() therefore
returns a DownloadResolution value rather than raising for 404. Every other
call raises through the exception hierarchy below.

The client performs no retries.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests

from yadisk_csv.config.settings import YandexDiskSettings

logger = logging.getLogger(__name__)


class YandexDiskClientError(Exception):
    """
    Base exception for Yandex Disk client errors.

    Carries the HTTP status code (None for connection-level failures) and the
    message returned by the API so callers can report the underlying failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text


class YandexDiskAuthenticationError(YandexDiskClientError):
    """
    Raised on 401 Unauthorized or 403 Forbidden.

    **Recovery**: Check the OAuth token; it may be expired or lack disk scopes.
    """
    pass


class YandexDiskNotFoundError(YandexDiskClientError):
    """
    Raised when the requested resource does not exist.

    The append node also raises it when the target file is absent and
    creation is disabled.
    """
    pass


class YandexDiskRateLimitError(YandexDiskClientError):
    """Raised on 429 Too Many Requests."""
    pass


class YandexDiskServerError(YandexDiskClientError):
    """Raised when the API returns a 5xx status."""
    pass


class DownloadStatus(Enum):
    FOUND = "found"
    ABSENT = "absent"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class DownloadResolution:
    """
    Outcome of resolving a download link for a remote path.

    Exactly one of the variants applies:
      - FOUND: href holds the temporary download URL.
      - ABSENT: the file does not exist (HTTP 404).
      - TRANSPORT_ERROR: any other failure; status_code/message describe it.

    Callers that cannot handle an error variant call raise_for_error(), which
    raises the same exception the other client methods would have raised.
    """
    status: DownloadStatus
    path: str
    href: Optional[str] = None
    status_code: Optional[int] = None
    message: str = ""

    @classmethod
    def found(cls, path: str, href: str) -> "DownloadResolution":
        return cls(status=DownloadStatus.FOUND, path=path, href=href, status_code=200)

    @classmethod
    def absent(cls, path: str, message: str = "") -> "DownloadResolution":
        return cls(status=DownloadStatus.ABSENT, path=path, status_code=404, message=message)

    @classmethod
    def transport_error(
        cls, path: str, status_code: Optional[int], message: str
    ) -> "DownloadResolution":
        return cls(
            status=DownloadStatus.TRANSPORT_ERROR,
            path=path,
            status_code=status_code,
            message=message,
        )

    @property
    def is_found(self) -> bool:
        return self.status is DownloadStatus.FOUND

    @property
    def is_absent(self) -> bool:
        return self.status is DownloadStatus.ABSENT

    def raise_for_error(self) -> None:
        """Raise the matching client exception for a TRANSPORT_ERROR variant."""
        if self.status is not DownloadStatus.TRANSPORT_ERROR:
            return
        # No status (connection failure) or a 2xx with an unusable body
        if self.status_code is None or _is_success(self.status_code):
            raise YandexDiskClientError(
                self.message,
                status_code=self.status_code,
                response_text=self.message,
            )
        _raise_for_status_code(
            self.status_code,
            self.message,
            context=f"resolve download link for '{self.path}'",
        )


def _raise_for_status_code(status_code: int, text: str, context: str) -> None:
    """Map a non-2xx status code to the client exception hierarchy."""
    if status_code in (401, 403):
        raise YandexDiskAuthenticationError(
            f"Authentication failed while trying to {context} (status {status_code}). "
            f"Check your access token. Response: {text}",
            status_code=status_code,
            response_text=text,
        )

    if status_code == 404:
        raise YandexDiskNotFoundError(
            f"Not found while trying to {context} (status 404). Response: {text}",
            status_code=status_code,
            response_text=text,
        )

    if status_code == 429:
        raise YandexDiskRateLimitError(
            f"Rate limit exceeded while trying to {context}. Response: {text}",
            status_code=status_code,
            response_text=text,
        )

    if status_code >= 500:
        raise YandexDiskServerError(
            f"Yandex Disk server error while trying to {context} "
            f"(status {status_code}). Response: {text}",
            status_code=status_code,
            response_text=text,
        )

    raise YandexDiskClientError(
        f"Request failed while trying to {context} (status {status_code}). "
        f"Response: {text}",
        status_code=status_code,
        response_text=text,
    )


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class YandexDiskClient:
    """
    Thin HTTP client for the Yandex Disk REST API.

    **Responsibilities**:
      - Add the OAuth authorization header to every request
      - Resolve temporary download/upload links
      - Transfer file bodies as text in a given encoding
      - Map HTTP errors (401/403, 404, 429, 5xx) to descriptive exceptions

    **NOT responsible for**:
      - CSV parsing or merging (yadisk_csv.data.csv_text)
      - Deciding whether a missing file is acceptable (the node does that)

    **Example usage**:
        >>> settings = YandexDiskSettings(access_token="y0_...")
        >>> with YandexDiskClient(settings) as client:
        ...     resolution = client.resolve_download("disk:/reports/data.csv")
        ...     if resolution.is_found:
        ...         text = client.download_text(resolution.href)
    """

    def __init__(self, settings: YandexDiskSettings):
        self.settings = settings
        self.session = requests.Session()

        # Sent on every call, including the temporary hrefs
        self.session.headers.update({
            "Authorization": self.settings.authorization_header,
            "Accept": "application/json",
            "User-Agent": self.settings.user_agent,
        })

    def resolve_download(self, path: str) -> DownloadResolution:
        """
        Resolve a temporary download link for a remote file.

        **HTTP request details**:
          - Method: GET
          - URL: {base_url}/resources/download
          - Query params: path

        Args:
            path: Remote path, e.g. "disk:/reports/data.csv".

        Returns:
            DownloadResolution: FOUND with href, ABSENT on 404, or
            TRANSPORT_ERROR with the status code and response text.

        Raises:
            ValueError: If path is empty.
            requests.Timeout: If the configured timeout is exceeded.
        """
        if not path or not path.strip():
            raise ValueError("Path cannot be empty")

        url = f"{self.settings.base_url}/resources/download"
        logger.debug("GET %s path=%s", url, path)

        try:
            response = self.session.get(
                url,
                params={"path": path},
                timeout=self.settings.timeout_seconds,
            )
        except requests.Timeout as e:
            raise requests.Timeout(
                f"Request to Yandex Disk timed out after {self.settings.timeout_seconds}s "
                f"while resolving download link for '{path}'."
            ) from e
        except requests.RequestException as e:
            return DownloadResolution.transport_error(
                path, None, f"Failed to connect to Yandex Disk at {self.settings.base_url}: {e}"
            )

        if response.status_code == 404:
            return DownloadResolution.absent(path, response.text)

        if not _is_success(response.status_code):
            return DownloadResolution.transport_error(path, response.status_code, response.text)

        try:
            href = self._extract_href(response, context=f"resolve download link for '{path}'")
        except YandexDiskClientError as e:
            return DownloadResolution.transport_error(path, response.status_code, str(e))
        return DownloadResolution.found(path, href)

    def download_text(self, href: str, encoding: str = "utf-8") -> str:
        """
        Fetch a file body from a temporary download link.

        Args:
            href: Link returned by resolve_download().
            encoding: Text encoding used to decode the body.

        Returns:
            Decoded file content ("" for an empty file).

        Raises:
            YandexDiskClientError (or subclass): On non-2xx status or
                connection failure.
            UnicodeDecodeError: If the body is not valid in `encoding`.
        """
        response = self._send("GET", href, context="download file content")
        return response.content.decode(encoding)

    def resolve_upload(self, path: str, overwrite: bool = True) -> str:
        """
        Resolve a temporary upload link for a remote file.

        **HTTP request details**:
          - Method: GET
          - URL: {base_url}/resources/upload
          - Query params: path, overwrite ("true"/"false")

        Returns:
            The upload href.

        Raises:
            ValueError: If path is empty.
            YandexDiskClientError (or subclass): On any failure.
        """
        if not path or not path.strip():
            raise ValueError("Path cannot be empty")

        context = f"resolve upload link for '{path}'"
        response = self._send(
            "GET",
            f"{self.settings.base_url}/resources/upload",
            context=context,
            params={"path": path, "overwrite": "true" if overwrite else "false"},
        )
        return self._extract_href(response, context=context)

    def upload_text(self, href: str, text: str, encoding: str = "utf-8") -> None:
        """
        Upload a complete file body to a temporary upload link.

        The body replaces the remote file entirely. The Content-Type header
        names the encoding so other consumers decode the CSV correctly.

        Raises:
            YandexDiskClientError (or subclass): On non-2xx status or
                connection failure.
            UnicodeEncodeError: If `text` cannot be represented in `encoding`.
        """
        body = text.encode(encoding)
        self._send(
            "PUT",
            href,
            context="upload file content",
            data=body,
            headers={"Content-Type": f"text/csv; charset={encoding}"},
        )

    def _send(self, method: str, url: str, context: str, **kwargs) -> requests.Response:
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.settings.timeout_seconds,
                **kwargs,
            )
        except requests.Timeout as e:
            raise requests.Timeout(
                f"Request to Yandex Disk timed out after {self.settings.timeout_seconds}s "
                f"while trying to {context}."
            ) from e
        except requests.ConnectionError as e:
            raise YandexDiskClientError(
                f"Failed to connect to Yandex Disk while trying to {context}. "
                f"Check network connection and base URL."
            ) from e
        except requests.RequestException as e:
            raise YandexDiskClientError(f"HTTP request failed while trying to {context}: {e}") from e

        if not _is_success(response.status_code):
            _raise_for_status_code(response.status_code, response.text, context)

        return response

    @staticmethod
    def _extract_href(response: requests.Response, context: str) -> str:
        try:
            data: Dict[str, Any] = response.json()
        except ValueError as e:
            raise YandexDiskClientError(
                f"Failed to parse JSON response while trying to {context}: {e}. "
                f"Response: {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )

        href = data.get("href") if isinstance(data, dict) else None
        if not href:
            raise YandexDiskClientError(
                f"Response missing 'href' field while trying to {context}. "
                f"Response: {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )
        return href

    def close(self):
        """Close the HTTP session and release pooled connections."""
        self.session.close()

    def __enter__(self):
        """Enable context manager support (with statement)."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Clean up session when exiting context manager."""
        self.close()
        return False
