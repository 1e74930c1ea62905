# /interviewer/config.py
"""
Centralized configuration for the Interviewer service and CLI.
Includes model settings, data source, cache/timeout windows and paths.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    return max(float(minimum), value)


def groq_api_key() -> str:
    """Read at call time so a key exported after import is still picked up."""
    return os.getenv("GROQ_API_KEY", "").strip()


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Chat Model ---
CHAT_MODEL_NAME = os.getenv("CHAT_MODEL_NAME", "llama-3.1-8b-instant")
CHAT_TEMPERATURE = _env_float("CHAT_TEMPERATURE", 0.7, minimum=0.0)
CHAT_MAX_TOKENS = _env_int("CHAT_MAX_TOKENS", 1024, minimum=16)

# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/interviewer/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(_BASE_DIR / "data")))

# Either a local path or an http(s) URL.
QUESTIONS_SOURCE = os.getenv("QUESTIONS_SOURCE", str(DATA_DIR / "questions.csv"))
CACHE_DIR = Path(os.getenv("CACHE_DIR", str(DATA_DIR / "runtime_cache")))
CATEGORY_CACHE_FILE = CACHE_DIR / "categories_cache.json"
METRICS_DIR = Path(os.getenv("METRICS_DIR", str(CACHE_DIR / "metrics")))

# --- Loading / Caching ---
CSV_FETCH_TIMEOUT_S = _env_float("CSV_FETCH_TIMEOUT_S", 10.0, minimum=0.5)
CATEGORY_CACHE_KEY = "interviewer_categories_cache"
CATEGORY_CACHE_TTL_S = _env_float("CATEGORY_CACHE_TTL_S", 300.0, minimum=0.0)
CATEGORY_LOAD_TIMEOUT_S = _env_float("CATEGORY_LOAD_TIMEOUT_S", 15.0, minimum=0.1)
PERSIST_CATEGORY_CACHE = _env_bool("PERSIST_CATEGORY_CACHE", True)

# --- Chat / Practice ---
NAVIGATE_DELAY_S = _env_float("NAVIGATE_DELAY_S", 0.5, minimum=0.0)
PRACTICE_SESSION_LIMIT = _env_int("PRACTICE_SESSION_LIMIT", 256, minimum=1)
EXPLANATION_CACHE_LIMIT = _env_int("EXPLANATION_CACHE_LIMIT", 128, minimum=1)
API_THREAD_POOL_WORKERS = _env_int("API_THREAD_POOL_WORKERS", 8, minimum=1)

# --- Create necessary directories ---
CACHE_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = Path(os.getenv("LOG_PATH", str(CACHE_DIR / "app.log")))
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH)
