"""
Configuration settings for Yandex Disk access.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). Settings are validated at
construction, so a missing token fails at startup rather than halfway through
an append.

**What lives here**:
  - YandexDiskSettings: API base URL, OAuth token, optional timeout, User-Agent.
  - Settings: top-level aggregate used by the command-line action.
  - get_settings()/reset_settings(): lazy singleton access for scripts and tests.

The workflow node itself does not read the environment: the host hands it a
credential per invocation. Environment settings are for the CLI and for
overriding the API endpoint.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Try to load .env file if present (dev/local environments)
try:
    from dotenv import load_dotenv
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)
except ImportError:
    # python-dotenv not installed; assume environment variables are set externally
    pass


DEFAULT_BASE_URL = "https://cloud-api.yandex.net/v1/disk"
DEFAULT_USER_AGENT = "yadisk-csv-append/0.1.0"


@dataclass(frozen=True)
class YandexDiskSettings:
    """
    Configuration for the Yandex Disk REST API.

    **Security note**: the access token is a secret. It is excluded from
    repr() so it never ends up in logs or tracebacks, and it should only be
    supplied through the environment or the host's credential store.

    **Timeouts**: the node defines no timeout of its own. When
    timeout_seconds is None, requests waits indefinitely and cancellation is
    left to whatever runs the invocation.

    Attributes:
        access_token: OAuth token sent as "Authorization: OAuth <token>".
                      REQUIRED - raises ValueError if empty.
        base_url: Base URL of the disk API (default: production endpoint).
        timeout_seconds: Optional per-request timeout in seconds.
        user_agent: User-Agent header sent on every request.
    """
    access_token: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: Optional[float] = None
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.access_token or not self.access_token.strip():
            raise ValueError(
                "YANDEX_DISK_ACCESS_TOKEN is required but not set. "
                "Please set it in your .env file or environment variables. "
                "Get an OAuth token at https://yandex.ru/dev/disk/rest/"
            )
        if not self.base_url:
            raise ValueError(
                "YANDEX_DISK_BASE_URL is empty. "
                "Unset it to use the default endpoint."
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got: {self.timeout_seconds}"
            )

    @property
    def authorization_header(self) -> str:
        return f"OAuth {self.access_token}"

    @classmethod
    def from_env(cls) -> "YandexDiskSettings":
        """
        Load Yandex Disk settings from environment variables.

        **Environment variables**:
          - YANDEX_DISK_ACCESS_TOKEN (required): OAuth token.
          - YANDEX_DISK_BASE_URL (optional): defaults to the production API.
          - YANDEX_DISK_TIMEOUT_SECONDS (optional): request timeout; unset or
            empty means no timeout.
          - YANDEX_DISK_USER_AGENT (optional): User-Agent override.

        Returns:
            YandexDiskSettings object with values loaded from environment.

        Raises:
            ValueError: If the token is missing or the timeout is not a number.

        Usage example:
            >>> # In .env file:
            >>> # YANDEX_DISK_ACCESS_TOKEN=y0_AgAAAA...
            >>>
            >>> settings = YandexDiskSettings.from_env()
            >>> print(settings.base_url)  # "https://cloud-api.yandex.net/v1/disk"
        """
        access_token = os.getenv("YANDEX_DISK_ACCESS_TOKEN", "")
        base_url = os.getenv("YANDEX_DISK_BASE_URL", DEFAULT_BASE_URL)
        timeout_str = os.getenv("YANDEX_DISK_TIMEOUT_SECONDS", "").strip()
        user_agent = os.getenv("YANDEX_DISK_USER_AGENT", DEFAULT_USER_AGENT)

        timeout_seconds = None
        if timeout_str:
            try:
                timeout_seconds = float(timeout_str)
            except ValueError:
                raise ValueError(
                    f"YANDEX_DISK_TIMEOUT_SECONDS must be a number, got: {timeout_str}"
                )

        return cls(
            access_token=access_token,
            base_url=base_url.rstrip("/"),
            timeout_seconds=timeout_seconds,
            user_agent=user_agent,
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings for the project.

    **Usage pattern**:
      ```python
      from yadisk_csv.config.settings import Settings

      settings = Settings.from_env(require_yandex_disk=True)
      disk_settings = settings.yandex_disk
      ```

    Attributes:
        yandex_disk: Yandex Disk settings, or None when no token is configured.
    """
    yandex_disk: Optional[YandexDiskSettings] = None

    @classmethod
    def from_env(cls, require_yandex_disk: bool = False) -> "Settings":
        """
        Load global settings from environment variables.

        Yandex Disk settings are optional by default so that tooling which
        never talks to the API (tests, descriptor inspection) still loads.

        Args:
            require_yandex_disk: If True, raise error if the token is missing.

        Raises:
            ValueError: If require_yandex_disk=True and settings cannot be loaded.
        """
        yandex_disk_settings = None
        try:
            yandex_disk_settings = YandexDiskSettings.from_env()
        except ValueError as e:
            if require_yandex_disk:
                raise ValueError(
                    f"Yandex Disk settings are required but could not be loaded: {e}"
                )

        return cls(yandex_disk=yandex_disk_settings)


# Loaded lazily on first get_settings() call.
# Tests can create Settings(yandex_disk=...) directly instead of using this.
_default_settings: Optional[Settings] = None


def get_settings(require_yandex_disk: bool = False) -> Settings:
    """
    Get the global settings singleton.

    Settings are loaded from the environment on first call, then cached.

    Args:
        require_yandex_disk: If True, raise error if Yandex Disk is not configured.

    Raises:
        ValueError: If require_yandex_disk=True and no token is configured.

    Usage example:
        >>> settings = get_settings(require_yandex_disk=True)
        >>> settings.yandex_disk.base_url
        'https://cloud-api.yandex.net/v1/disk'
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env(require_yandex_disk=require_yandex_disk)

    if require_yandex_disk and _default_settings.yandex_disk is None:
        raise ValueError(
            "Yandex Disk settings are required but not configured. "
            "Please set YANDEX_DISK_ACCESS_TOKEN in your .env file."
        )

    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    **Testing pattern**:
      ```python
      def test_something(monkeypatch):
          reset_settings()
          monkeypatch.setenv("YANDEX_DISK_ACCESS_TOKEN", "test_token")
          assert get_settings().yandex_disk.access_token == "test_token"
      ```
    """
    global _default_settings
    _default_settings = None
