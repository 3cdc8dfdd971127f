from __future__ import annotations

import pytest
import structlog

from dowhistle.infra.errors import (
    ConnectivityError,
    DoWhistleError,
    FallbackError,
    LLMError,
    ToolExecutionError,
)
from dowhistle.infra.logging import setup_logging


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (DoWhistleError("x"), "INTERNAL_ERROR"),
            (ConnectivityError("x"), "NOT_CONNECTED"),
            (ToolExecutionError("x"), "TOOL_ERROR"),
            (LLMError("x"), "LLM_ERROR"),
            (FallbackError("x"), "FALLBACK_ERROR"),
        ],
    )
    def test_default_codes(self, error, code) -> None:
        assert isinstance(error, DoWhistleError)
        assert error.code == code
        assert str(error) == "x"

    def test_fallback_is_llm_error(self) -> None:
        assert isinstance(FallbackError("x"), LLMError)

    def test_code_override(self) -> None:
        assert ConnectivityError("x", code="TIMEOUT").code == "TIMEOUT"


class TestSetupLogging:
    def teardown_method(self) -> None:
        structlog.reset_defaults()

    @pytest.mark.parametrize("json_output", [True, False])
    def test_configures(self, json_output) -> None:
        setup_logging(json_output=json_output, log_level="debug")
        assert structlog.is_configured()

    def test_events_written_to_stderr(self, capsys) -> None:
        setup_logging(json_output=True, log_level="INFO")
        structlog.get_logger().info("route_search", keyword="burger")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert '"event": "route_search"' in captured.err

    def test_level_filter(self, capsys) -> None:
        setup_logging(json_output=True, log_level="WARNING")
        structlog.get_logger().info("tool_invoked")
        assert capsys.readouterr().err == ""

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging(log_level="chatty")
