import pytest
from pydantic import ValidationError

from app.settings import DEFAULT_ORIGIN, Settings


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("TARGET_TOKENS", "5")
    monkeypatch.setenv("TRUMP_SELECTION", "strongest")
    monkeypatch.setenv("SHUFFLE_SEED", "11")
    monkeypatch.setenv("REPORT_ILLEGAL_ACTIONS", "false")
    settings = Settings(_env_file=None)
    assert settings.target_tokens == 5
    assert settings.trump_selection == "strongest"
    assert settings.shuffle_seed == 11
    assert settings.report_illegal_actions is False


def test_settings_accept_field_names_and_aliases():
    assert Settings(_env_file=None, target_tokens=3).target_tokens == 3
    assert Settings(_env_file=None, TARGET_TOKENS=4).target_tokens == 4
    with pytest.raises(ValidationError):
        Settings(_env_file=None, TARGET_TOKENS=11)


def test_allowed_origins_always_include_default():
    settings = Settings(_env_file=None, ORIGIN=f"https://omi.example, ,{DEFAULT_ORIGIN}")
    assert settings.allowed_origins() == [DEFAULT_ORIGIN, "https://omi.example"]
