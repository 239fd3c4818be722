"""Paths, constants, and settings resolution."""

import json
import os
from pathlib import Path

# ─────────────────────────────────────────────────────
# Home directory — all data lives here
# ─────────────────────────────────────────────────────
SKILL_DIR = Path(os.environ.get("TRENDPULSE_HOME", Path.home() / ".trendpulse"))
DATA_DIR = SKILL_DIR / "data"
LOGS_DIR = SKILL_DIR / "logs"
CONFIG_FILE = SKILL_DIR / "config.json"
STORE_FILE = DATA_DIR / "store.json"

# ─────────────────────────────────────────────────────
# Engine constants — override via env or config.json
# ─────────────────────────────────────────────────────
CACHE_TTL_SECONDS = 60.0
SOURCE_TIMEOUT_SECONDS = 8.0
MAX_LAG_HOURS = 3.0
WATCH_STALE_MINUTES = 10

DEFAULT_SOURCES = ["reddit", "google_trends", "x"]
DEFAULT_HASHTAG_SOURCES = ["reddit", "x"]
GLOBAL_REGION = "global"

USER_AGENT = "Mozilla/5.0 (compatible; trendpulse/1.0)"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
FEED_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"


# ─────────────────────────────────────────────────────
# Utilities
# ─────────────────────────────────────────────────────
def write_secret_file(path: Path, content: str):
    """Write a file with 0600 permissions (owner read/write only).

    Uses os.open() with explicit mode to avoid a TOCTOU race where the file
    briefly exists with default (world-readable) permissions.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(content)


def load_config() -> dict:
    """Load the full config.json, including per-source sections."""
    if CONFIG_FILE.exists():
        try:
            return json.loads(CONFIG_FILE.read_text())
        except Exception:
            pass
    return {}


def save_config(config: dict):
    """Save config.json with restricted permissions."""
    SKILL_DIR.mkdir(parents=True, exist_ok=True)
    write_secret_file(CONFIG_FILE, json.dumps(config, indent=2))


# ─────────────────────────────────────────────────────
# Settings resolution — env → config.json → default
# ─────────────────────────────────────────────────────
def _get_key(name: str) -> str:
    """Resolve a raw setting: environment variable first, then config.json."""
    val = os.environ.get(name)
    if val:
        return val
    val = load_config().get(name)
    if val:
        return str(val)
    return ""


def get_setting(section: str, key: str, default: float) -> float:
    """Numeric engine setting.

    Checked in order: ``TRENDPULSE_<SECTION>_<KEY>`` env var, the
    ``section.key`` entry of config.json, then ``default``. Unparseable
    values fall back to the default.
    """
    env_name = f"TRENDPULSE_{section}_{key}".upper()
    raw = os.environ.get(env_name)
    if not raw:
        raw = load_config().get(section, {}).get(key)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def get_source_config(name: str) -> dict:
    """Options for one source adapter (``sources.<name>`` in config.json)."""
    return load_config().get("sources", {}).get(name, {})


def get_extra_noise_terms() -> list[str]:
    return list(load_config().get("noise_filter", {}).get("extra_terms", []))


def get_store_path() -> Path:
    custom = _get_key("TRENDPULSE_STORE") or load_config().get("store", {}).get("path", "")
    if custom:
        return Path(custom).expanduser()
    return STORE_FILE
