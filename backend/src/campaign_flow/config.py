"""Load settings from environment (.env and env vars)."""

from __future__ import annotations

import os
from pathlib import Path

# Load .env from backend root if present
_BACKEND_DIR = Path(__file__).resolve().parent.parent.parent
_env_path = _BACKEND_DIR / ".env"
if _env_path.exists():
    from dotenv import load_dotenv
    load_dotenv(_env_path)


def _str(key: str, default: str = "") -> str:
    return (os.environ.get(key) or "").strip() or default


def _float(key: str, default: float) -> float:
    try:
        return float(_str(key) or default)
    except ValueError:
        return default


# Step-execution backend
CAMPAIGN_BACKEND_URL = _str("CAMPAIGN_BACKEND_URL", "http://localhost:8000")
CAMPAIGN_BACKEND_TOKEN = _str("CAMPAIGN_BACKEND_TOKEN")
CAMPAIGN_BACKEND_TIMEOUT = _float("CAMPAIGN_BACKEND_TIMEOUT", 15.0)


def data_dir() -> Path:
    """Snapshot directory; read on every call so tests and reloads can repoint it."""
    return Path(_str("CAMPAIGN_FLOW_DATA_DIR") or str(_BACKEND_DIR / ".data"))
