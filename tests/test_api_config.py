"""
Tests for concierge API configuration.
"""
import pytest

from concierge_api.config import APIConfig, get_config, load_env_files, parse_int_env, reset_config


ENV_KEYS = (
    "CONCIERGE_HOST",
    "CONCIERGE_PORT",
    "CONCIERGE_API_KEY",
    "CONCIERGE_RULE_SET",
    "CONVERSATION_LOG_PATH",
    "CONVERSATION_LOG_MAX_ROWS",
    "LOG_LEVEL",
    "LOG_JSON",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


def test_config_defaults():
    config = APIConfig.from_env()

    assert config.host == "0.0.0.0"
    assert config.port == 8000
    assert config.api_key is None
    assert config.rule_set == "grand_plaza"
    assert config.conversation_log_path is None
    assert config.conversation_log_max_rows == 10000
    assert config.log_level == "INFO"
    assert config.log_json is True


def test_config_from_env_all_fields(monkeypatch):
    monkeypatch.setenv("CONCIERGE_HOST", "127.0.0.1")
    monkeypatch.setenv("CONCIERGE_PORT", "9000")
    monkeypatch.setenv("CONCIERGE_API_KEY", "anon-key")
    monkeypatch.setenv("CONCIERGE_RULE_SET", "seaside")
    monkeypatch.setenv("CONVERSATION_LOG_PATH", "/tmp/conversations.jsonl")
    monkeypatch.setenv("CONVERSATION_LOG_MAX_ROWS", "50")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LOG_JSON", "no")

    config = APIConfig.from_env()

    assert config.host == "127.0.0.1"
    assert config.port == 9000
    assert config.api_key == "anon-key"
    assert config.rule_set == "seaside"
    assert config.conversation_log_path == "/tmp/conversations.jsonl"
    assert config.conversation_log_max_rows == 50
    assert config.log_level == "DEBUG"
    assert config.log_json is False


def test_int_env_strips_comments(monkeypatch):
    monkeypatch.setenv("CONCIERGE_PORT", "8080  # local dev")
    assert APIConfig.from_env().port == 8080


def test_int_env_garbage_uses_default(monkeypatch):
    monkeypatch.setenv("CONVERSATION_LOG_MAX_ROWS", "lots")
    assert APIConfig.from_env().conversation_log_max_rows == 10000


@pytest.mark.parametrize(
    "raw,expected",
    [("800", 800), (" 1200  # slower talkers", 1200), ("# only a comment", 5), ("", 5)],
)
def test_parse_int_env(monkeypatch, raw, expected):
    monkeypatch.setenv("SOME_DELAY_MS", raw)
    assert parse_int_env("SOME_DELAY_MS", default=5) == expected


def test_empty_api_key_means_open(monkeypatch):
    monkeypatch.setenv("CONCIERGE_API_KEY", "")
    assert APIConfig.from_env().api_key is None


def test_get_config_is_cached(monkeypatch):
    first = get_config()
    monkeypatch.setenv("CONCIERGE_PORT", "9999")
    assert get_config() is first

    reset_config()
    assert get_config().port == 9999


def test_load_env_files_does_not_override(monkeypatch, tmp_path):
    (tmp_path / ".env_local").write_text(
        "CONCIERGE_RULE_SET=from_file\nCONCIERGE_HOST=10.0.0.1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("CONCIERGE_HOST", "127.0.0.1")
    # Registered so teardown removes the value the file load sets
    monkeypatch.setenv("CONCIERGE_RULE_SET", "placeholder")
    monkeypatch.delenv("CONCIERGE_RULE_SET")

    load_env_files(tmp_path)
    config = APIConfig.from_env()

    assert config.rule_set == "from_file"
    assert config.host == "127.0.0.1"
