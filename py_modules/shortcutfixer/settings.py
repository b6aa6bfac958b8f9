"""
User settings for Shortcut Fixer.

Stored as JSON in the data directory. Every value has a default so a missing
or partially written settings file still yields a usable configuration.
The Steam library path itself is owned by the frontend and passed per call.
"""
import json
import logging
import os
from dataclasses import dataclass, asdict, field, fields
from typing import Any, Dict, List, Optional

from .library.exclusions import DEFAULT_EXCLUSIONS
from .repair.ledger import TEMP_SUFFIX
from .shortcuts.icons import DEFAULT_ICON_CANDIDATES
from .utils.paths import SETTINGS_PATH

logger = logging.getLogger(__name__)


@dataclass
class FixerSettings:
    temp_suffix: str = TEMP_SUFFIX
    exclusions: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUSIONS))
    icon_candidates: List[str] = field(default_factory=lambda: list(DEFAULT_ICON_CANDIDATES))
    download_missing_icons: bool = True
    max_workers: int = 4
    steam_path: Optional[str] = None     # Overrides Steam install detection

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FixerSettings':
        known = {f.name for f in fields(cls)}
        settings = cls(**{k: v for k, v in data.items() if k in known})
        if not settings.temp_suffix:
            logger.warning("[Settings] Empty temp_suffix is not allowed, using default")
            settings.temp_suffix = TEMP_SUFFIX
        if settings.max_workers < 1:
            settings.max_workers = 1
        return settings


def load_settings(path: str = SETTINGS_PATH) -> FixerSettings:
    """Load settings, falling back to defaults for anything missing or invalid."""
    try:
        if os.path.exists(path):
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if isinstance(data, dict):
                return FixerSettings.from_dict(data)
            logger.error(f"[Settings] Ignoring {path}: expected a JSON object")
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"[Settings] Error loading settings from {path}: {e}")
    return FixerSettings()


def save_settings(settings: FixerSettings, path: str = SETTINGS_PATH) -> bool:
    """Save settings to file."""
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings.to_dict(), f, indent=2)
        logger.info(f"[Settings] Saved settings to {path}")
        return True
    except OSError as e:
        logger.error(f"[Settings] Error saving settings: {e}")
        return False
