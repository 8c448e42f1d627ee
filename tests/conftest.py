"""Shared test fixtures."""

import os

import pytest

from tele.config import get_settings
from tele.logging.config import get_logging_config
from tele.logging.context import clear_context
from tele.logging.logger import reset_logging


@pytest.fixture(autouse=True)
def _clear_environment(monkeypatch):
    """Clear environment variables that affect settings and service selection."""
    env_vars_to_clear = [
        "MOONSHOT_API_KEY",
        "MOONSHOT_API_KEY_",
        "OPENAI_API_KEY",
        "OPENAI_API_KEY_",
        "GEMINI_API_KEY",
        "GEMINI_API_KEY_",
    ]
    env_vars_to_clear.extend(name for name in os.environ if name.upper().startswith("TELE_"))
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    get_settings.cache_clear()
    get_logging_config.cache_clear()
    clear_context()
    yield
    get_settings.cache_clear()
    get_logging_config.cache_clear()
    reset_logging()
