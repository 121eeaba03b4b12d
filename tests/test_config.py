"""Tests for config module."""

from pathlib import Path

import pytest

from doctree.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "DOCTREE_DATA_DIR",
        "DOCTREE_DB",
        "DOCTREE_PORT",
        "DOCTREE_AUTH_TOKEN",
        "DOCTREE_READ_ONLY",
        "DOCTREE_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_config_defaults():
    """Test config loads with defaults when no env vars set."""
    config = Config.from_env()
    assert config.data_dir == Path.home() / ".doctree"
    assert config.index_db == Path.home() / ".doctree" / "index.db"
    assert config.port == 3333
    assert config.auth_token is None
    assert config.read_only is False
    assert config.workers == 4


def test_config_from_env(monkeypatch):
    """Test config loads from environment variables."""
    monkeypatch.setenv("DOCTREE_DATA_DIR", "/custom/doctree")
    monkeypatch.setenv("DOCTREE_PORT", "9000")
    monkeypatch.setenv("DOCTREE_DB", "/custom/db.sqlite")
    monkeypatch.setenv("DOCTREE_WORKERS", "2")

    config = Config.from_env()
    assert config.data_dir == Path("/custom/doctree")
    assert config.port == 9000
    assert config.index_db == Path("/custom/db.sqlite")
    assert config.workers == 2


def test_db_defaults_inside_data_dir(monkeypatch):
    monkeypatch.setenv("DOCTREE_DATA_DIR", "/srv/doctree")
    assert Config.from_env().index_db == Path("/srv/doctree/index.db")


def test_config_tilde_expansion(monkeypatch):
    """Test config expands tilde in paths."""
    monkeypatch.setenv("DOCTREE_DATA_DIR", "~/custom/doctree")
    config = Config.from_env()
    assert "~" not in str(config.data_dir)
    assert config.data_dir.is_absolute()


def test_config_invalid_port_non_numeric(monkeypatch):
    """Test config raises error for non-numeric port."""
    monkeypatch.setenv("DOCTREE_PORT", "not_a_number")
    with pytest.raises(ValueError, match="Invalid DOCTREE_PORT"):
        Config.from_env()


def test_config_invalid_port_out_of_range(monkeypatch):
    """Test config raises error for port out of valid range."""
    monkeypatch.setenv("DOCTREE_PORT", "70000")
    with pytest.raises(ValueError, match="Port must be between 1 and 65535"):
        Config.from_env()


def test_config_invalid_workers(monkeypatch):
    monkeypatch.setenv("DOCTREE_WORKERS", "0")
    with pytest.raises(ValueError, match="Workers must be >= 1"):
        Config.from_env()


def test_config_short_auth_token_rejected(monkeypatch):
    monkeypatch.setenv("DOCTREE_AUTH_TOKEN", "short")
    with pytest.raises(ValueError, match="at least 32 characters"):
        Config.from_env()


@pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("YES", True), ("no", False), ("", False)])
def test_config_read_only_from_env(monkeypatch, value, expected):
    monkeypatch.setenv("DOCTREE_READ_ONLY", value)
    assert Config.from_env().read_only is expected


def test_read_only_override_wins(monkeypatch):
    """CLI flag takes precedence over env var."""
    monkeypatch.setenv("DOCTREE_READ_ONLY", "true")
    assert Config.from_env(read_only_override=False).read_only is False
