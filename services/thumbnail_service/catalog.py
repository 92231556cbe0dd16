import logging
from pathlib import Path
from typing import Dict, List, Optional

from .models import CatalogAsset

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".svg", ".png", ".jpg", ".jpeg", ".gif", ".webp"}


def display_name(stem: str) -> str:
    """"dotnet-purple_dark" -> "Dotnet Purple Dark"."""
    parts = stem.replace("_", "-").split("-")
    return " ".join(p[:1].upper() + p[1:] for p in parts if p)


def discover_assets(directory: Path, url_prefix: str, *, with_variant: bool = True) -> List[CatalogAsset]:
    """List the image files directly inside `directory` as catalog entries.
    Backgrounds whose name contains "light" are light-variant, everything else dark."""
    if not directory.is_dir():
        return []
    prefix = url_prefix if url_prefix.endswith("/") else url_prefix + "/"
    assets: List[CatalogAsset] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        stem = path.stem
        variant = None
        if with_variant:
            variant = "light" if "light" in stem.lower() else "dark"
        assets.append(CatalogAsset(id=stem.lower(), name=display_name(stem), url=f"{prefix}{path.name}", variant=variant))
    return assets


class AssetCatalog:
    """Backgrounds and logos found under the assets directory:

    assets/backgrounds/*          shared backgrounds
    assets/logos/*                logos
    assets/templates/<set>/*      template specific backgrounds
    """

    def __init__(self, assets_dir: Path, url_prefix: str = "/assets/"):
        self.assets_dir = Path(assets_dir)
        self.url_prefix = url_prefix if url_prefix.endswith("/") else url_prefix + "/"
        self._backgrounds: Dict[str, List[CatalogAsset]] = {}
        self._logos: Optional[List[CatalogAsset]] = None

    def shared_backgrounds(self) -> List[CatalogAsset]:
        if "" not in self._backgrounds:
            self._backgrounds[""] = discover_assets(self.assets_dir / "backgrounds", f"{self.url_prefix}backgrounds/")
            logger.info(f"Discovered {len(self._backgrounds[''])} shared backgrounds in {self.assets_dir}")
        return self._backgrounds[""]

    def backgrounds(self, background_set: Optional[str] = None) -> List[CatalogAsset]:
        """Template specific backgrounds, or the shared ones when the set is empty or missing."""
        if not background_set:
            return self.shared_backgrounds()
        if background_set not in self._backgrounds:
            self._backgrounds[background_set] = discover_assets(
                self.assets_dir / "templates" / background_set,
                f"{self.url_prefix}templates/{background_set}/",
            )
        return self._backgrounds[background_set] or self.shared_backgrounds()

    def logos(self) -> List[CatalogAsset]:
        if self._logos is None:
            self._logos = discover_assets(self.assets_dir / "logos", f"{self.url_prefix}logos/", with_variant=False)
        return self._logos

    def find_background(self, background_id: Optional[str], background_set: Optional[str] = None) -> Optional[CatalogAsset]:
        if not background_id:
            return None
        return next((bg for bg in self.backgrounds(background_set) if bg.id == background_id), None)

    def find_logo(self, logo_id: str) -> Optional[CatalogAsset]:
        return next((logo for logo in self.logos() if logo.id == logo_id), None)
