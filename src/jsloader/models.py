"""Canonical Pydantic models shared across all jsloader modules.

The models fall into two groups:

**Configuration models** -- read once at process start from the JSON config
file and environment, then passed down explicitly:
    :class:`RequestConfig`, :class:`ServerConfig`, and :class:`LoaderConfig`.

**API and result models** -- ephemeral records that are never persisted:
    :class:`ChannelInfo`, :class:`ChannelDirectory`, and :class:`CheckResult`.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_API_BASE_URL = "https://truemine.org/api/1.0"
DEFAULT_CHANNEL = "0"
DEFAULT_EXPIRES_IN_SECONDS = 300

TRANSPORT_STREAM = "stream"
TRANSPORT_CLIENT = "client"
KNOWN_TRANSPORTS = (TRANSPORT_STREAM, TRANSPORT_CLIENT)
"""Every transport name, in the default order of preference."""


def default_caching_file(channel: str) -> str:
    """Return the cache filename used when none is configured for *channel*."""
    return f"tm.channel.{channel}.min.js.cache"


# --- Configuration ---


class RequestConfig(BaseModel):
    """Outbound HTTP settings applied to both the API call and the script download."""

    timeout: float = Field(default=5.0, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(
        default=1, ge=0, description="Retries on connection errors and 5xx (client transport)"
    )


class ServerConfig(BaseModel):
    """Bind address for ``jsloader serve``."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=0, le=65535)


class LoaderConfig(BaseModel):
    """Process-wide loader configuration.

    Constructed once by :func:`~jsloader.config.load_config` and never
    mutated afterwards (the model is frozen). ``caching_file`` defaults to
    ``tm.channel.<channel>.min.js.cache`` and must be a bare filename;
    ``cache_directory`` is made absolute by the config loader.

    Example::

        LoaderConfig(
            channel="12",
            api_key="790b160959eb400aae87ba96fc90a402",
            cache_directory="/var/cache/jsloader",
        )
    """

    model_config = ConfigDict(frozen=True)

    channel: str = Field(default=DEFAULT_CHANNEL, description="Channel to serve")
    api_key: str = Field(min_length=1, description="Credential for the channel directory")
    cache_directory: str = Field(default=".", description="Writable cache location")
    caching_file: str = Field(default="", description="Cache key (filename)")
    cache_expires_in_seconds: int = Field(
        default=DEFAULT_EXPIRES_IN_SECONDS, ge=1, description="Freshness window"
    )
    api_base_url: str = DEFAULT_API_BASE_URL
    transports: list[str] = Field(
        default_factory=lambda: list(KNOWN_TRANSPORTS),
        description="Download strategies to probe, in order of preference",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @model_validator(mode="before")
    @classmethod
    def _fill_caching_file(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("caching_file"):
            channel = data.get("channel", DEFAULT_CHANNEL)
            data = {**data, "caching_file": default_caching_file(str(channel))}
        return data

    @field_validator("channel", mode="before")
    @classmethod
    def _coerce_channel(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("caching_file")
    @classmethod
    def _check_caching_file(cls, value: str) -> str:
        if value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
            raise ValueError(f"caching_file must be a plain filename, got {value!r}")
        return value

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("transports")
    @classmethod
    def _check_transports(cls, value: list[str]) -> list[str]:
        unknown = [name for name in value if name not in KNOWN_TRANSPORTS]
        if unknown:
            raise ValueError(
                f"Unknown transport(s) {unknown}; expected any of {list(KNOWN_TRANSPORTS)}"
            )
        return value


# --- Channel directory ---


class ChannelInfo(BaseModel):
    """One record of the channel directory: a channel and its script URL."""

    model_config = ConfigDict(extra="allow")

    channel: str
    script_url: str

    @field_validator("channel", mode="before")
    @classmethod
    def _coerce_channel(cls, value: Any) -> Any:
        # The API is inconsistent about quoting channel numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ChannelDirectory(BaseModel):
    """Response body of ``GET <api_base_url>/<api_key>/``."""

    model_config = ConfigDict(extra="allow")

    channels: list[ChannelInfo] = Field(default_factory=list)


# --- Self-test ---


class CheckResult(BaseModel):
    """Outcome of one installation self-test check."""

    label: str
    passed: bool
    detail: Optional[str] = None
