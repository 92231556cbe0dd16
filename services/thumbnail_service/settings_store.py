import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping

logger = logging.getLogger(__name__)

# Known keys: templateId, backgroundId, backgroundId_<templateId>, resolution, exportFormat


class SettingsStore:
    """Operator preferences kept as one JSON object on disk.
    Missing or corrupt storage reads as {}; write failures are logged and ignored."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        try:
            if not self.path.exists():
                return {}
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                return data
            logger.warning(f"Ignoring persisted settings in {self.path}: not a JSON object")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load persisted settings: {e}")
        return {}

    def save(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge `settings` into the stored object and return the result."""
        updated = {**self.load(), **dict(settings)}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(updated, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save settings: {e}")
        return updated

    def persist(self, key: str, value: Any) -> None:
        self.save({key: value})

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to clear settings: {e}")
