import pytest
from pydantic import ValidationError

from chat_relay.config.settings import RelaySettings


def test_defaults(monkeypatch):
    for name in ("DEFAULT_MODEL", "RELAY_QUEUE_SIZE", "STREAM_IDLE_TIMEOUT", "RELAY_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    cfg = RelaySettings(_env_file=None)
    assert cfg.relay_queue_size == 16
    assert cfg.stream_idle_timeout is None
    assert cfg.cors_origins == ["http://localhost:5173"]


def test_yaml_file_below_environment(tmp_path, monkeypatch):
    config_file = tmp_path / "relay.yaml"
    config_file.write_text("default_model: yaml/model\nrelay_queue_size: 8\n", encoding="utf-8")
    monkeypatch.setenv("RELAY_CONFIG_FILE", str(config_file))
    monkeypatch.delenv("DEFAULT_MODEL", raising=False)
    monkeypatch.setenv("RELAY_QUEUE_SIZE", "32")

    cfg = RelaySettings(_env_file=None)
    assert cfg.default_model == "yaml/model"
    assert cfg.relay_queue_size == 32


def test_rejects_short_api_key():
    with pytest.raises(ValidationError):
        RelaySettings(_env_file=None, openrouter_api_key="short")


def test_log_level_normalised():
    assert RelaySettings(_env_file=None, log_level="debug").log_level == "DEBUG"
    with pytest.raises(ValidationError):
        RelaySettings(_env_file=None, log_level="chatty")
