"""Tests for settings groups and their validators."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dowhistle.config.settings import (
    LogSettings,
    OpenAISettings,
    SearchSettings,
    Settings,
    ToolServerSettings,
)


class TestToolServerSettings:
    def test_reconnect_defaults(self) -> None:
        s = ToolServerSettings()
        assert s.max_connect_attempts == 5
        assert s.retry_base_delay_s == 2.0
        assert s.retry_max_delay_s == 30.0
        assert s.health_interval_s == 30.0

    def test_trailing_slash_stripped(self) -> None:
        assert ToolServerSettings(base_url="http://tools:3001/").base_url == "http://tools:3001"

    def test_non_http_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="TOOL_SERVER_BASE_URL must be an http"):
            ToolServerSettings(base_url="ws://tools:3001")

    def test_max_delay_below_base_rejected(self) -> None:
        with pytest.raises(ValidationError, match="retry_max_delay_s"):
            ToolServerSettings(retry_base_delay_s=10.0, retry_max_delay_s=5.0)

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ToolServerSettings(max_connect_attempts=0)

    def test_env_prefix(self, monkeypatch) -> None:
        monkeypatch.setenv("TOOL_SERVER_BASE_URL", "https://api.example.com")
        monkeypatch.setenv("TOOL_SERVER_MAX_CONNECT_ATTEMPTS", "2")
        s = ToolServerSettings()
        assert s.base_url == "https://api.example.com"
        assert s.max_connect_attempts == 2


class TestOpenAISettings:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_MODEL", raising=False)
        monkeypatch.delenv("OPENAI_MAX_OUTPUT_TOKENS", raising=False)
        s = OpenAISettings()
        assert s.model == "gpt-4o-mini"
        assert s.max_output_tokens == 300

    def test_temperature_out_of_range(self) -> None:
        with pytest.raises(ValidationError, match="OPENAI_TEMPERATURE"):
            OpenAISettings(temperature=2.5)


class TestOtherSettings:
    def test_search_defaults(self) -> None:
        s = SearchSettings()
        assert (s.radius_km, s.result_limit, s.display_limit) == (10.0, 10, 3)

    def test_log_level_normalized(self) -> None:
        assert LogSettings(level="debug").level == "DEBUG"

    def test_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="LOG_LEVEL must be one of"):
            LogSettings(level="verbose")

    def test_root_composes_groups(self) -> None:
        s = Settings(search=SearchSettings(display_limit=5))
        assert s.search.display_limit == 5
        assert isinstance(s.tool_server, ToolServerSettings)
