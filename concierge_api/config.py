"""
Concierge API configuration.

Loads settings from environment variables with sensible defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_RULE_SET = "grand_plaza"


def load_env_files(root: Optional[Path] = None) -> None:
    """
    Load .env_local / .env.local from the project root (local dev convenience).

    Never overrides variables that are already exported.
    """
    root = root or Path(__file__).parent.parent
    for name in (".env_local", ".env.local"):
        p = root / name
        if p.exists():
            load_dotenv(p, override=False)


def parse_int_env(key: str, default: int) -> int:
    """
    Parse integer environment variable, stripping comments and whitespace.

    "8000  # comment" -> 8000, unset or garbage -> default
    """
    value = os.environ.get(key)
    if not value:
        return default

    if "#" in value:
        value = value.split("#")[0]
    value = value.strip()
    if not value:
        return default

    try:
        return int(value)
    except ValueError:
        return default


def _parse_bool_env(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class APIConfig:
    """Concierge API configuration."""

    host: str = "0.0.0.0"
    port: int = 8000

    # Bearer key required from callers when set
    api_key: Optional[str] = None

    # Canned response set (file name under concierge_api/rule_sets)
    rule_set: str = DEFAULT_RULE_SET

    # Conversation log
    conversation_log_path: Optional[str] = None
    conversation_log_max_rows: int = 10000

    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "APIConfig":
        """Load configuration from environment variables."""
        return cls(
            host=os.environ.get("CONCIERGE_HOST", "0.0.0.0"),
            port=parse_int_env("CONCIERGE_PORT", default=8000),
            api_key=os.environ.get("CONCIERGE_API_KEY") or None,
            rule_set=os.environ.get("CONCIERGE_RULE_SET", DEFAULT_RULE_SET),
            conversation_log_path=os.environ.get("CONVERSATION_LOG_PATH") or None,
            conversation_log_max_rows=parse_int_env("CONVERSATION_LOG_MAX_ROWS", default=10000),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_json=_parse_bool_env("LOG_JSON", True),
        )


def get_config() -> APIConfig:
    """Get or create global config instance."""
    global _config
    if _config is None:
        _config = APIConfig.from_env()
    return _config


def reset_config() -> None:
    """Forget the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None


# Global config instance (lazy loaded)
_config: Optional[APIConfig] = None
