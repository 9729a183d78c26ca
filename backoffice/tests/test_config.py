"""Tests for backoffice.config: YAML config with environment overrides."""

import logging

import pytest

from backoffice.config import configure_logging, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DATABASE_URL", "REDIS_URL", "LEDGER_LOG_LEVEL", "LEDGER_REALTIME_BACKEND"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config["reconciliation"]["mark_overdue"] is False
        assert config["reconciliation"]["sync_sample_size"] == 5
        assert config["cache"]["ttl"] == 300
        assert config["realtime"]["backend"] == "memory"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@db/ledger")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/0")
        monkeypatch.setenv("LEDGER_LOG_LEVEL", "debug")
        config = load_config()
        assert config["database"]["url"] == "postgresql://ledger@db/ledger"
        assert config["cache"]["redis_url"] == "redis://cache:6379/0"
        assert config["logging"]["level"] == "debug"

    def test_explicit_overrides_win(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///from-env.db")
        config = load_config(overrides={"database": {"url": "memory"}})
        assert config["database"]["url"] == "memory"

    def test_custom_file(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text("reconciliation:\n  mark_overdue: true\n", encoding="utf-8")
        config = load_config(str(path))
        assert config["reconciliation"]["mark_overdue"] is True
        assert "cache" not in config

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == {}


class TestConfigureLogging:
    def test_level_applied(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        configure_logging({"logging": {"level": "warning"}})
        assert calls[0]["level"] == logging.WARNING

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))
        configure_logging({"logging": {"level": "chatty"}})
        assert calls[0]["level"] == logging.INFO
