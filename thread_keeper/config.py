"""Configuration for ThreadKeeper."""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


VALID_HISTORY_MODES = ["fixed", "since-last"]
VALID_BROWSERS = ["edge", "chrome", "firefox", "brave", "safari"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Configuration class for ThreadKeeper."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Where sessions, the index, the signing key and the relay token live.
        # None means "use the platform's application data directory".
        data_dir = os.getenv("THREAD_KEEPER_DATA_DIR")
        self.data_dir: Optional[str] = os.path.expanduser(data_dir) if data_dir else None

        # Capture parameters
        self.history_minutes_back = int(os.getenv("THREAD_KEEPER_HISTORY_MINUTES_BACK", "60"))
        # "fixed" uses history_minutes_back, "since-last" reaches back to the previous capture
        self.history_mode = os.getenv("THREAD_KEEPER_HISTORY_MODE", "fixed").lower()
        self.clipboard_capture = _env_bool("THREAD_KEEPER_CLIPBOARD_CAPTURE", "true")

        # Browser used to reopen URLs on restore
        self.default_browser = os.getenv("THREAD_KEEPER_DEFAULT_BROWSER", "edge").lower()

        # Local ports: extension relay and Chromium remote debugging
        self.relay_port = int(os.getenv("THREAD_KEEPER_RELAY_PORT", "9224"))
        self.debug_port = int(os.getenv("THREAD_KEEPER_DEBUG_PORT", "9222"))

        # Sessions older than this are pruned on service start
        self.retention_days = int(os.getenv("THREAD_KEEPER_RETENTION_DAYS", "90"))

        # OpenAI-compatible endpoint for session summaries
        self.ai_summary_enabled = _env_bool("THREAD_KEEPER_AI_SUMMARY_ENABLED", "true")
        self.llm_endpoint = os.getenv("THREAD_KEEPER_LLM_ENDPOINT", "http://localhost:8000/v1")
        self.llm_model = os.getenv("THREAD_KEEPER_LLM_MODEL", "qwen-30b")
        self.llm_api_key = os.getenv("THREAD_KEEPER_LLM_API_KEY", "not-needed")

        self.log_level = os.getenv("THREAD_KEEPER_LOG_LEVEL", "INFO").upper()

        # Validate configuration
        self._validate()

    def _validate(self):
        """Validate configuration values."""
        if self.history_mode not in VALID_HISTORY_MODES:
            raise ValueError(
                f"Invalid history mode '{self.history_mode}'. "
                f"Must be one of: {', '.join(VALID_HISTORY_MODES)}"
            )

        if self.default_browser not in VALID_BROWSERS:
            raise ValueError(
                f"Invalid default browser '{self.default_browser}'. "
                f"Must be one of: {', '.join(VALID_BROWSERS)}"
            )

        if self.history_minutes_back <= 0:
            raise ValueError(f"History window must be positive, got {self.history_minutes_back}")

        if self.retention_days <= 0:
            raise ValueError(f"Retention days must be positive, got {self.retention_days}")

        for name, port in (("relay", self.relay_port), ("debug", self.debug_port)):
            if not 0 < port < 65536:
                raise ValueError(f"Invalid {name} port {port}")

        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{self.log_level}'. "
                f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )


# Create a global config instance
_config = Config()

# Expose configuration values as module-level variables
DATA_DIR = _config.data_dir
HISTORY_MINUTES_BACK = _config.history_minutes_back
HISTORY_MODE = _config.history_mode
CLIPBOARD_CAPTURE = _config.clipboard_capture
DEFAULT_BROWSER = _config.default_browser
RELAY_PORT = _config.relay_port
DEBUG_PORT = _config.debug_port
RETENTION_DAYS = _config.retention_days
AI_SUMMARY_ENABLED = _config.ai_summary_enabled
LLM_ENDPOINT = _config.llm_endpoint
LLM_MODEL = _config.llm_model
LLM_API_KEY = _config.llm_api_key
LOG_LEVEL = _config.log_level

__all__ = [
    "Config",
    "DATA_DIR",
    "HISTORY_MINUTES_BACK",
    "HISTORY_MODE",
    "CLIPBOARD_CAPTURE",
    "DEFAULT_BROWSER",
    "RELAY_PORT",
    "DEBUG_PORT",
    "RETENTION_DAYS",
    "AI_SUMMARY_ENABLED",
    "LLM_ENDPOINT",
    "LLM_MODEL",
    "LLM_API_KEY",
    "LOG_LEVEL",
]
