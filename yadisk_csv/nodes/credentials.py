"""
Credential descriptor for Yandex Disk access tokens.

The host stores the secret and passes it to the node per invocation as a
mapping with a single "accessToken" field. The node wraps it in
YandexDiskCredential and never persists it.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

CREDENTIAL_NAME = "yandexDiskAccessToken"

CREDENTIAL_DESCRIPTION = {
    "name": CREDENTIAL_NAME,
    "displayName": "Yandex Disk Access Token",
    "documentationUrl": "https://yandex.ru/dev/disk/rest/",
    "properties": [
        {
            "displayName": "Access Token",
            "name": "accessToken",
            "type": "string",
            "default": "",
            "typeOptions": {"password": True},
            "description": (
                "Yandex Disk OAuth token. Sent as the header "
                "`Authorization: OAuth <token>`."
            ),
        },
    ],
}


@dataclass(frozen=True)
class YandexDiskCredential:
    """Opaque OAuth token supplied by the host."""
    access_token: str = field(repr=False)

    def __post_init__(self):
        if not self.access_token or not self.access_token.strip():
            raise ValueError(
                f"Credential '{CREDENTIAL_NAME}' has an empty access token"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "YandexDiskCredential":
        token = data.get("accessToken")
        if not isinstance(token, str):
            raise ValueError(
                f"Credential '{CREDENTIAL_NAME}' must provide 'accessToken' as a string"
            )
        return cls(access_token=token)
