import logging

import pytest

from flowguard.config import Settings
from flowguard.errors import FlowguardError, InputValidationError
from flowguard.utils.logger import get_logger, init_logger
from flowguard.utils.paths import get_path, has_path, set_path, split_path


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("FLOWGUARD_MAX_OPERATIONS", "8")
    monkeypatch.setenv("FLOWGUARD_DEFAULT_PROFILE", "strict")
    monkeypatch.setenv("FLOWGUARD_CACHE_TTL", "1.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("FLOWGUARD_LOG_FILE", "logs/flowguard.log")
    s = Settings.from_env()
    assert s.max_operations == 8
    assert s.default_profile == "strict"
    assert s.cache_ttl == 1.5
    assert s.log_level == logging.DEBUG
    assert s.log_file == "logs/flowguard.log"


def test_settings_defaults_and_overrides(monkeypatch):
    for name in ("FLOWGUARD_MAX_OPERATIONS", "FLOWGUARD_DEFAULT_PROFILE", "FLOWGUARD_CACHE_TTL", "FLOWGUARD_LOG_FILE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FLOWGUARD_MAX_OPERATIONS", "lots")
    s = Settings.from_env(default_profile="minimal", max_operations=None)
    assert s.max_operations == 5
    assert s.default_profile == "minimal"
    assert s.log_level == logging.INFO
    assert s.log_file is None
    assert s.with_overrides(max_operations=2).max_operations == 2


def test_logger_writes_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "flowguard.log"
    logger = init_logger(level=logging.INFO, log_file=log_file)
    try:
        get_logger("diff").info("applied %d operations", 3)
        get_logger("diff").debug("not written")
        for h in logger.handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "flowguard.diff" in text and "applied 3 operations" in text
        assert "not written" not in text
    finally:
        init_logger(level=logging.WARNING)


def test_input_error_is_a_value_error():
    err = InputValidationError("bad", ["a", "b"])
    assert isinstance(err, ValueError) and isinstance(err, FlowguardError)
    assert err.errors == ["a", "b"]
    assert InputValidationError("only").errors == ["only"]


def test_paths():
    assert split_path("a.b[0].c") == ["a", "b", "0", "c"]
    data = {"a": {"b": [{"c": 1}]}}
    assert get_path(data, "a.b[0].c") == 1
    assert get_path(data, "a.x.y", "d") == "d"
    assert has_path(data, "a.b.0") and not has_path(data, "a.b.3")

    set_path(data, "a.b[0].d", 2)
    set_path(data, "x.y", 3)
    assert data["a"]["b"][0] == {"c": 1, "d": 2}
    assert data["x"] == {"y": 3}

    set_path(data, "a.b[0].c", None)
    set_path(data, "missing.key", None)
    assert data["a"]["b"][0] == {"d": 2}
    assert "missing" not in data

    with pytest.raises(ValueError):
        set_path(data, "a.b[5]", 1)
    with pytest.raises(ValueError):
        set_path(data, "a.b.name.x", 1)
