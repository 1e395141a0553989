"""CSDash Backend Configuration."""
import os
from dataclasses import dataclass
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


# Project root (one level up from csdash/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Upstream spreadsheet-sharing product
AIRTABLE_BASE_URL = os.getenv("CSDASH_AIRTABLE_BASE_URL", "https://airtable.com").rstrip("/")
FETCH_TIMEOUT_SECONDS = _env_float("CSDASH_FETCH_TIMEOUT_SECONDS", 10.0)
USER_AGENT = os.getenv(
    "CSDASH_USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
# Minimum body length accepted from the share-header download endpoints.
DIRECT_DOWNLOAD_MIN_LENGTH = _env_int("CSDASH_DIRECT_DOWNLOAD_MIN_LENGTH", 50)
MAX_HTML_RECORDS = _env_int("CSDASH_MAX_HTML_RECORDS", 10)

# Connection settings persistence
CONNECTION_STORE_PATH = Path(os.getenv("CSDASH_CONNECTION_STORE_PATH", ".csdash-connection.json"))

# Webhook ingestion
WEBHOOK_SECRET = os.getenv("CSDASH_WEBHOOK_SECRET", "")

# Chat assistant
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("CSDASH_ANTHROPIC_MODEL", "claude-3-5-sonnet-20241022")
ANTHROPIC_MAX_TOKENS = _env_int("CSDASH_ANTHROPIC_MAX_TOKENS", 1000)
ANTHROPIC_TEMPERATURE = _env_float("CSDASH_ANTHROPIC_TEMPERATURE", 0.7)

# Observability
OTEL_ENABLED = _env_bool("CSDASH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CSDASH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CSDASH_OTEL_SERVICE_NAME", "csdash-backend")
PROM_PORT = _env_int("CSDASH_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("CSDASH_HOST", "0.0.0.0")
PORT = int(os.getenv("CSDASH_PORT", "8000"))

# CORS
FRONTEND_ORIGIN = os.getenv("CSDASH_FRONTEND_ORIGIN", "http://localhost:3000")


@dataclass(frozen=True)
class FetchSettings:
    """Knobs for one extraction run; defaults come from the environment."""

    base_url: str = AIRTABLE_BASE_URL
    timeout_seconds: float = FETCH_TIMEOUT_SECONDS
    user_agent: str = USER_AGENT
    direct_download_min_length: int = DIRECT_DOWNLOAD_MIN_LENGTH
    max_html_records: int = MAX_HTML_RECORDS


def fetch_settings() -> FetchSettings:
    return FetchSettings()
