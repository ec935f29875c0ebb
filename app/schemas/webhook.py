from __future__ import annotations

import ipaddress
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

_DISALLOWED_IPV4_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)
_IPV6_LOOPBACK = ipaddress.ip_address("::1")


def _validate_webhook_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme.lower() not in {"http", "https"}:
        raise ValueError("Webhook URL must use http or https")
    if not parsed.hostname:
        raise ValueError("Webhook URL must include a host")

    try:
        target_ip = ipaddress.ip_address(parsed.hostname)
    except ValueError:
        return value

    if isinstance(target_ip, ipaddress.IPv4Address) and any(
        target_ip in network for network in _DISALLOWED_IPV4_NETWORKS
    ):
        raise ValueError("Webhook URL host cannot be loopback, link-local, or private")
    if target_ip == _IPV6_LOOPBACK:
        raise ValueError("Webhook URL host cannot be loopback, link-local, or private")
    return value


def _validate_events(value: list[str]) -> list[str]:
    cleaned = [item.strip() for item in value if item and item.strip()]
    if not cleaned:
        raise ValueError("At least one event is required")
    return cleaned


class WebhookCreate(BaseModel):
    workspace_id: UUID | None = None
    name: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1, max_length=2048)
    secret: str | None = Field(default=None, max_length=255)
    events: list[str]
    is_active: bool = True

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        return _validate_webhook_url(value)

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: list[str]) -> list[str]:
        return _validate_events(value)


class WebhookUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    url: str | None = Field(default=None, max_length=2048)
    secret: str | None = Field(default=None, max_length=255)
    events: list[str] | None = None
    is_active: bool | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_webhook_url(value)

    @field_validator("events")
    @classmethod
    def validate_events(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return _validate_events(value)
