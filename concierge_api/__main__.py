"""
Entry point for running the concierge API.

Usage:
    python -m concierge_api

Host and port come from CONCIERGE_HOST / CONCIERGE_PORT (default 0.0.0.0:8000).
"""
import uvicorn

from logging_setup import setup_logging
from .config import get_config, load_env_files

if __name__ == "__main__":
    load_env_files()
    config = get_config()

    setup_logging(level=config.log_level, use_json=config.log_json)

    uvicorn.run(
        "concierge_api.server:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
