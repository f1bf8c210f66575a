"""Runtime settings read from the environment (.env supported)."""
import os
from pathlib import Path

from dotenv import load_dotenv

import engine

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
FUZZY_THRESHOLD = _int_env("FUZZY_THRESHOLD", engine.FUZZY_THRESHOLD)
PERSIST_MAX_ATTEMPTS = _int_env("PERSIST_MAX_ATTEMPTS", engine.PERSIST_MAX_ATTEMPTS)
CONNECTIVITY_TIMEOUT = _int_env("CONNECTIVITY_TIMEOUT", 5)
STORE_DIR = Path(os.getenv("EDVENTURE_STORE_DIR", ".edventure"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
