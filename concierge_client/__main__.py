"""
Entry point for the text console front-end.

Usage:
    CONCIERGE_API_URL=http://127.0.0.1:8000 python -m concierge_client
"""
import asyncio
import os

from concierge_api.config import load_env_files
from logging_setup import setup_logging
from .console import main

if __name__ == "__main__":
    load_env_files()
    # Console output is for the guest; keep logs quiet unless asked for.
    setup_logging(level=os.environ.get("LOG_LEVEL", "WARNING"))
    asyncio.run(main())
