"""Tests for environment configuration, errors and logging setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from rampforge._internal.config import RampForgeConfig, load_config
from rampforge._internal.errors import ConfigError, EngineError, RampForgeError, ScriptError
from rampforge._internal.logging import _JsonFormatter, get_logger, setup_logging


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for var in ("RAMPFORGE_TIMEOUT", "RAMPFORGE_POOL_SIZE", "RAMPFORGE_TICK_INTERVAL"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


class TestRampForgeConfig:
    """Tests for the RampForgeConfig dataclass."""

    def test_defaults(self):
        config = RampForgeConfig()
        assert config.request_timeout == 30.0
        assert config.connection_pool_size == 100
        assert config.tick_interval == 1.0

    def test_frozen(self):
        """RampForgeConfig is immutable."""
        config = RampForgeConfig()
        with pytest.raises(AttributeError):
            config.tick_interval = 2.0  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self, clean_env: pytest.MonkeyPatch):
        """load_config returns defaults when no env vars are set."""
        assert load_config() == RampForgeConfig()

    def test_values_from_env(self, clean_env: pytest.MonkeyPatch):
        clean_env.setenv("RAMPFORGE_TIMEOUT", "10.5")
        clean_env.setenv("RAMPFORGE_POOL_SIZE", "50")
        clean_env.setenv("RAMPFORGE_TICK_INTERVAL", "0.25")

        config = load_config()
        assert config.request_timeout == 10.5
        assert config.connection_pool_size == 50
        assert config.tick_interval == 0.25

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("RAMPFORGE_POOL_SIZE", "abc"),
            ("RAMPFORGE_POOL_SIZE", "0"),
            ("RAMPFORGE_TIMEOUT", "slow"),
            ("RAMPFORGE_TIMEOUT", "-1"),
            ("RAMPFORGE_TICK_INTERVAL", "0"),
            ("RAMPFORGE_TICK_INTERVAL", "nan"),
            ("RAMPFORGE_TIMEOUT", "inf"),
        ],
    )
    def test_invalid_values_raise(self, clean_env: pytest.MonkeyPatch, var: str, value: str):
        clean_env.setenv(var, value)
        with pytest.raises(ConfigError, match=var):
            load_config()


class TestErrors:
    def test_hierarchy(self):
        """Every framework error can be caught as RampForgeError."""
        for cls in (ConfigError, ScriptError, EngineError):
            assert issubclass(cls, RampForgeError)


class TestLogging:
    def test_get_logger_is_namespaced(self):
        assert get_logger("engine.pool").name == "rampforge.engine.pool"

    def test_setup_logging_does_not_stack_handlers(self):
        logger = setup_logging(logging.INFO)
        count = len(logger.handlers)
        setup_logging(logging.DEBUG)
        assert len(logger.handlers) == count
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        setup_logging(logging.WARNING)

    def test_json_formatter_emits_one_object(self):
        record = logging.LogRecord(
            name="rampforge.test",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="users=%d",
            args=(3,),
            exc_info=None,
        )
        data = json.loads(_JsonFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["logger"] == "rampforge.test"
        assert data["message"] == "users=3"
        assert "exception" not in data

    def test_json_formatter_includes_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            name="rampforge.test",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg="user crashed",
            args=(),
            exc_info=exc_info,
        )
        data = json.loads(_JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]
