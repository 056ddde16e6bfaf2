"""Tests for the pydantic models and the exception hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from jsloader import exceptions
from jsloader.exit_codes import (
    EXIT_API_ERROR,
    EXIT_CACHE_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_TRANSPORT_UNAVAILABLE,
)
from jsloader.models import ChannelDirectory, LoaderConfig, default_caching_file


class TestLoaderConfig:
    def test_caching_file_follows_channel(self) -> None:
        config = LoaderConfig(channel=7, api_key="k")
        assert config.channel == "7"
        assert config.caching_file == default_caching_file("7") == "tm.channel.7.min.js.cache"

    def test_empty_caching_file_uses_default(self) -> None:
        assert LoaderConfig(api_key="k", caching_file="").caching_file == default_caching_file("0")

    def test_api_base_url_trailing_slash_stripped(self) -> None:
        config = LoaderConfig(api_key="k", api_base_url="https://x.test/api/1.0/")
        assert config.api_base_url == "https://x.test/api/1.0"

    def test_empty_api_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoaderConfig(api_key="")

    def test_zero_timeout_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoaderConfig(api_key="k", request={"timeout": 0})


class TestChannelDirectory:
    def test_parses_mixed_channel_types(self) -> None:
        directory = ChannelDirectory.model_validate(
            {
                "channels": [
                    {"channel": 1, "script_url": "a.min.js", "name": "first"},
                    {"channel": "2", "script_url": "b.min.js"},
                ],
                "version": 3,
            }
        )
        assert [c.channel for c in directory.channels] == ["1", "2"]

    def test_missing_channels_is_empty(self) -> None:
        assert ChannelDirectory.model_validate({}).channels == []


class TestExceptions:
    @pytest.mark.parametrize(
        "exc_cls,code",
        [
            (exceptions.JSLoaderError, EXIT_GENERIC_FAILURE),
            (exceptions.ConfigError, EXIT_INVALID_USAGE),
            (exceptions.CacheKeyError, EXIT_INVALID_USAGE),
            (exceptions.ChannelNotFoundError, EXIT_NOT_FOUND),
            (exceptions.APIResponseError, EXIT_API_ERROR),
            (exceptions.NetworkError, EXIT_CONNECTION_ERROR),
            (exceptions.TransportUnavailableError, EXIT_TRANSPORT_UNAVAILABLE),
            (exceptions.CacheWriteError, EXIT_CACHE_ERROR),
        ],
    )
    def test_default_exit_codes(self, exc_cls, code) -> None:
        exc = exc_cls("boom")
        assert exc.exit_code == code
        assert str(exc) == "boom"
        assert isinstance(exc, exceptions.JSLoaderError)

    def test_explicit_exit_code_wins(self) -> None:
        assert exceptions.NetworkError("x", exit_code=42).exit_code == 42
