"""Tests for settings."""

from parley.core.config import Settings


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PARLEY_DEFAULT_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("PARLEY_SUMMARY_MODEL", "")
    monkeypatch.setenv("PARLEY_DB_PATH", str(tmp_path / "chats.db"))
    monkeypatch.setenv("PARLEY_ROLES", '[{"name": "reviewer", "alias": "r"}]')

    settings = Settings(_env_file=None)
    assert settings.default_model == "gemini-2.5-pro"
    assert settings.summary_model == ""
    assert settings.db_path == tmp_path / "chats.db"
    assert settings.roles[0].alias == "r"


def test_resolve_model_aliases():
    settings = Settings(_env_file=None, model_aliases={"pro": "gemini-2.5-pro"})
    assert settings.resolve_model("pro") == "gemini-2.5-pro"
    assert settings.resolve_model("gemini-2.0-flash") == "gemini-2.0-flash"
