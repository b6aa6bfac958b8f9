"""
Where Steam shortcuts live, and where Steam itself is installed.

Locations that do not exist on this machine are simply left out.
"""
import logging
import os
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional

from ..errors import SteamNotFound
from ..utils.paths import DEFAULT_LINUX_STEAM_PATHS, DEFAULT_WINDOWS_STEAM_PATH

logger = logging.getLogger(__name__)


@dataclass
class ShortcutLocation:
    label: str
    path: str
    recursive: bool = False   # Start Menu keeps Steam shortcuts in a subfolder


def default_shortcut_locations(env: Optional[Mapping[str, str]] = None) -> List[ShortcutLocation]:
    """Desktop, OneDrive-synced Desktop and Start Menu, when present."""
    env = os.environ if env is None else env
    locations = []

    userprofile = env.get('USERPROFILE')
    if userprofile:
        locations.append(ShortcutLocation('Desktop', os.path.join(userprofile, 'Desktop')))
        locations.append(ShortcutLocation('OneDrive Desktop', os.path.join(userprofile, 'OneDrive', 'Desktop')))

    appdata = env.get('APPDATA')
    if appdata:
        locations.append(ShortcutLocation(
            'Start Menu',
            os.path.join(appdata, 'Microsoft', 'Windows', 'Start Menu', 'Programs'),
            recursive=True,
        ))

    existing = [loc for loc in locations if os.path.isdir(loc.path)]
    logger.debug(f"[QuickFix] Shortcut locations: {[loc.path for loc in existing]}")
    return existing


def _registry_steam_path() -> Optional[str]:
    if sys.platform != 'win32':
        return None
    import winreg
    try:
        with winreg.OpenKey(winreg.HKEY_CURRENT_USER, r"SOFTWARE\Valve\Steam") as key:
            value, _ = winreg.QueryValueEx(key, "SteamPath")
            return os.path.normpath(value)
    except OSError as e:
        logger.debug(f"[QuickFix] Steam registry key not readable: {e}")
        return None


def _looks_like_steam(path: str) -> bool:
    return (
        os.path.isfile(os.path.join(path, 'steam.exe'))
        or os.path.isdir(os.path.join(path, 'steamapps'))
    )


def find_steam_install(override: Optional[str] = None) -> str:
    """
    Locate the Steam installation directory.

    Raises:
        SteamNotFound: no candidate looks like a Steam install.
    """
    candidates = []
    if override:
        candidates.append(os.path.expanduser(override))
    if sys.platform == 'win32':
        candidates.append(DEFAULT_WINDOWS_STEAM_PATH)
        registry_path = _registry_steam_path()
        if registry_path:
            candidates.append(registry_path)
    else:
        candidates.extend(DEFAULT_LINUX_STEAM_PATHS)

    for candidate in candidates:
        if _looks_like_steam(candidate):
            logger.info(f"[QuickFix] Steam path: {candidate}")
            return candidate

    raise SteamNotFound()
