import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


PACKAGE_DIR = Path(__file__).resolve().parent

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Server
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8020"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://{HOST}:{PORT}").rstrip("/")

# Assets (backgrounds, logos) served from disk and mounted under ASSETS_URL_PREFIX
ASSETS_DIR = Path(os.getenv("ASSETS_DIR", "").strip() or str(PACKAGE_DIR.parent.parent / "assets")).resolve()
ASSETS_URL_PREFIX = "/" + os.getenv("ASSETS_URL_PREFIX", "/assets/").strip().strip("/") + "/"

# SVG token templates for the fixed-layout variants
TEMPLATES_DIR = Path(os.getenv("TEMPLATES_DIR", "").strip() or str(PACKAGE_DIR / "templates")).resolve()

# Persisted operator preferences (single JSON blob)
SETTINGS_PATH = Path(os.getenv("SETTINGS_PATH", "").strip() or str(Path.home() / ".thumbnail-service" / "settings.json"))

# Where exported files are written when the caller asks for a copy on disk
EXPORT_DIR = os.getenv("EXPORT_DIR", "").strip() or None

# Export pipeline
FETCH_TIMEOUT_S = float(os.getenv("FETCH_TIMEOUT_S", "10"))
RASTER_QUALITY = int(os.getenv("RASTER_QUALITY", "92"))
INLINE_IMAGES = _env_flag("INLINE_IMAGES", "true")

# Font files used for precise text measurement. Missing files fall back to the heuristic model.
FONT_REGULAR_PATH = os.getenv("FONT_REGULAR_PATH", "").strip() or None
FONT_SEMIBOLD_PATH = os.getenv("FONT_SEMIBOLD_PATH", "").strip() or None
FONT_BOLD_PATH = os.getenv("FONT_BOLD_PATH", "").strip() or None

CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
