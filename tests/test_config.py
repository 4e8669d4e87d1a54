import pytest
from pydantic import ValidationError

from engine.config import EngineSettings, get_settings


def test_defaults():
    s = EngineSettings()

    assert s.max_tree_depth == 32
    assert s.uncategorized_label == "Uncategorized"
    assert s.seed_path == "data/seed.json"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FINANCE_MAX_TREE_DEPTH", "8")
    monkeypatch.setenv("FINANCE_LOG_LEVEL", "debug")
    s = EngineSettings()

    assert s.max_tree_depth == 8
    assert s.log_level == "DEBUG"


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("FINANCE_MAX_TREE_DEPTH", "1")
    with pytest.raises(ValidationError):
        EngineSettings()

    monkeypatch.setenv("FINANCE_MAX_TREE_DEPTH", "32")
    monkeypatch.setenv("FINANCE_LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        EngineSettings()


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
