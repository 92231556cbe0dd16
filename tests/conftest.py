"""
Pytest configuration for local imports and shared fixtures.
"""

import io
import os
import sys
from pathlib import Path

import pytest
from PIL import Image


def _ensure_services_on_path() -> None:
    """
    Ensure the services directory is on sys.path so the package imports without installing.
    """
    services_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "services"))
    if services_dir not in sys.path:
        sys.path.insert(0, services_dir)


_ensure_services_on_path()

from thumbnail_service.config import PACKAGE_DIR  # noqa: E402
from thumbnail_service.text_metrics import HeuristicTextMetrics  # noqa: E402


def png_bytes(size=(8, 8), color=(200, 30, 30, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


def cairo_available() -> bool:
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError):
        return False
    return True


@pytest.fixture
def metrics():
    return HeuristicTextMetrics()


@pytest.fixture
def templates_dir() -> Path:
    return PACKAGE_DIR / "templates"


@pytest.fixture
def assets_dir(tmp_path) -> Path:
    """
    A small asset tree: two shared backgrounds, two logos and one template specific background.
    """
    root = tmp_path / "assets"
    (root / "backgrounds").mkdir(parents=True)
    (root / "logos").mkdir()
    (root / "templates" / "on-dotnet-live").mkdir(parents=True)
    (root / "backgrounds" / "purple-dark.png").write_bytes(png_bytes(color=(60, 20, 120, 255)))
    (root / "backgrounds" / "soft-light.png").write_bytes(png_bytes(color=(240, 240, 250, 255)))
    (root / "backgrounds" / "notes.txt").write_text("not an image")
    (root / "logos" / "dotnet.png").write_bytes(png_bytes(color=(80, 40, 200, 255)))
    (root / "logos" / "csharp.png").write_bytes(png_bytes(color=(20, 120, 40, 255)))
    (root / "templates" / "on-dotnet-live" / "live-stage.png").write_bytes(png_bytes())
    return root
