"""
Shortcut Icon Repair Engine

Quick fix for Steam desktop/Start Menu shortcuts that show a blank icon:
- Finds .url shortcuts that launch steam://rungameid/<appid>
- Resolves the icon from Steam's local icon cache (first existing candidate)
- Downloads the icon from Steam's CDN when the cache has none
- Rewrites only the IconFile line when it points elsewhere

Shortcuts that are not Steam game shortcuts are skipped without a result.
"""
import asyncio
import logging
import os
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import UnresolvedIcon
from ..library.exclusions import is_excluded
from ..models import ShortcutFixResult
from .cdn import IconDownloader, IconDownloadError
from .locations import ShortcutLocation
from .url_file import (
    UrlShortcut,
    extract_game_id,
    get_icon_file,
    icon_file_name,
    read_url_shortcut,
    set_icon_file,
    write_url_shortcut,
)

logger = logging.getLogger(__name__)

# Icon cache layouts, relative to the Steam install, in priority order.
# {icon_name} is the file name the shortcut already references.
DEFAULT_ICON_CANDIDATES = (
    "steam/games/{icon_name}",
    "steam/games/{app_id}.ico",
    "appcache/librarycache/{app_id}_icon.jpg",
)

ICON_CACHE_DIR = "steam/games"

ICON_HASH_PATTERN = re.compile(r'^([0-9a-f]+)\.ico$', re.IGNORECASE)
APP_ID_PATTERN = re.compile(r'^\d{1,10}$')


def icon_candidates(steam_path: str, app_id: str, icon_name: Optional[str],
                    templates: Sequence[str] = DEFAULT_ICON_CANDIDATES) -> List[str]:
    """Expand candidate templates; templates needing an unknown icon_name are skipped."""
    paths = []
    for template in templates:
        if '{icon_name}' in template and not icon_name:
            continue
        relative = template.format(app_id=app_id, icon_name=icon_name or '')
        paths.append(os.path.join(steam_path, *relative.split('/')))
    return paths


def resolve_icon(steam_path: str, app_id: str, icon_name: Optional[str],
                 templates: Sequence[str] = DEFAULT_ICON_CANDIDATES) -> Optional[str]:
    """First candidate that exists on disk, or None."""
    for candidate in icon_candidates(steam_path, app_id, icon_name, templates):
        if os.path.isfile(candidate):
            return candidate
    return None


def _same_path(a: Optional[str], b: str) -> bool:
    if not a:
        return False
    a = a.strip().strip('"')
    return os.path.normcase(os.path.normpath(a)) == os.path.normcase(os.path.normpath(b))


class ShortcutIconFixer:
    """
    Repairs icon references of Steam shortcuts in the given locations.

    Args:
        steam_path: Steam install directory (icon cache root)
        locations: where to look for shortcuts
        app_index: app_id -> name from the last scan, used for labels and exclusions
        exclusions: runtime package names to skip
        icon_candidates: ordered cache layouts, see DEFAULT_ICON_CANDIDATES
        downloader: fetches missing icons from the CDN; None disables downloads
        max_workers: shortcuts processed concurrently
    """

    def __init__(self, steam_path: str, locations: Iterable[ShortcutLocation],
                 app_index: Optional[Dict[str, str]] = None,
                 exclusions: Optional[Iterable[str]] = None,
                 icon_candidates: Sequence[str] = DEFAULT_ICON_CANDIDATES,
                 downloader: Optional[IconDownloader] = None,
                 max_workers: int = 4):
        self.steam_path = steam_path
        self.locations = list(locations)
        self.app_index = app_index or {}
        self.exclusions = list(exclusions) if exclusions is not None else None
        self.icon_templates = tuple(icon_candidates)
        self.downloader = downloader
        self.max_workers = max(1, max_workers)

    def find_shortcuts(self) -> List[Tuple[ShortcutLocation, str]]:
        """All .url files per location, location order then path order, without duplicates."""
        found = []
        seen = set()
        for location in self.locations:
            paths = []
            if location.recursive:
                for root, _dirs, files in os.walk(location.path):
                    paths.extend(os.path.join(root, f) for f in files if f.lower().endswith('.url'))
            else:
                try:
                    entries = os.listdir(location.path)
                except OSError as e:
                    logger.warning(f"[QuickFix] Cannot list {location.path}: {e}")
                    continue
                paths.extend(
                    os.path.join(location.path, f) for f in entries
                    if f.lower().endswith('.url') and os.path.isfile(os.path.join(location.path, f))
                )
            for path in sorted(paths):
                key = os.path.normcase(os.path.realpath(path))
                if key in seen:
                    continue
                seen.add(key)
                found.append((location, path))
        return found

    def _failure(self, name: str, game_id: str, location: ShortcutLocation,
                 path: str, error: str) -> ShortcutFixResult:
        logger.warning(f"[QuickFix] Failed {path}: {error}")
        return ShortcutFixResult(
            name=name, game_id=game_id, icon_url='', location=location.label,
            success=False, error=error, shortcut_path=path,
        )

    async def _resolve(self, shortcut: UrlShortcut, app_id: str,
                       icon_name: Optional[str]) -> Tuple[str, str]:
        """Returns (local icon path, where it came from: the path itself or the CDN URL)."""
        resolved = resolve_icon(self.steam_path, app_id, icon_name, self.icon_templates)
        if resolved:
            return resolved, resolved

        hash_match = ICON_HASH_PATTERN.match(icon_name or '')
        if self.downloader is None or not hash_match:
            raise UnresolvedIcon(shortcut.path, app_id, f"No cached icon found for app {app_id}")

        dest = os.path.join(self.steam_path, *ICON_CACHE_DIR.split('/'), icon_name)
        url = await self.downloader.download(app_id, hash_match.group(1), dest)
        return dest, url

    async def fix_shortcut(self, location: ShortcutLocation, path: str) -> Optional[ShortcutFixResult]:
        """Repair one shortcut. Returns None when it is not a Steam game shortcut."""
        try:
            return await self._fix_shortcut(location, path)
        except Exception as e:
            logger.error(f"[QuickFix] Unexpected error fixing {path}: {e}", exc_info=True)
            stem = os.path.splitext(os.path.basename(path))[0]
            return self._failure(stem, '', location, path, f"Unexpected error: {e}")

    async def _fix_shortcut(self, location: ShortcutLocation, path: str) -> Optional[ShortcutFixResult]:
        stem = os.path.splitext(os.path.basename(path))[0]
        try:
            shortcut = read_url_shortcut(path)
        except OSError as e:
            return self._failure(stem, '', location, path, f"Failed to read file: {e}")

        game_id = extract_game_id(shortcut.text)
        if game_id is None:
            return None

        name = self.app_index.get(game_id) or shortcut.name
        if is_excluded(name, self.exclusions):
            logger.debug(f"[QuickFix] Skipping excluded shortcut {name}")
            return None

        if not APP_ID_PATTERN.match(game_id):
            return self._failure(name, game_id, location, path, f"Unresolvable app id: {game_id!r}")

        current_icon = get_icon_file(shortcut.text)
        try:
            resolved, source = await self._resolve(shortcut, game_id, icon_file_name(current_icon))
        except (UnresolvedIcon, IconDownloadError) as e:
            return self._failure(name, game_id, location, path, str(e))

        changed = False
        if not _same_path(current_icon, resolved):
            try:
                write_url_shortcut(shortcut, set_icon_file(shortcut.text, resolved))
            except UnicodeEncodeError:
                return self._failure(
                    name, game_id, location, path,
                    f"Icon path cannot be written in the shortcut's {shortcut.encoding} encoding"
                )
            except PermissionError as e:
                return self._failure(name, game_id, location, path, f"Permission denied writing shortcut: {e}")
            except OSError as e:
                return self._failure(name, game_id, location, path, f"Failed to write shortcut: {e}")
            changed = True
            logger.info(f"[QuickFix] Fixed: {name} -> {resolved}")
        else:
            logger.debug(f"[QuickFix] Already correct: {name}")

        return ShortcutFixResult(
            name=name, game_id=game_id, icon_url=source, location=location.label,
            success=True, shortcut_path=path, changed=changed,
        )

    async def fix_all(self) -> List[ShortcutFixResult]:
        """Examine every shortcut; one result per Steam game shortcut, in discovery order."""
        shortcuts = self.find_shortcuts()
        logger.info(f"[QuickFix] Scanning {len(shortcuts)} shortcuts in {len(self.locations)} locations")
        semaphore = asyncio.Semaphore(self.max_workers)

        async def limited(location: ShortcutLocation, path: str) -> Optional[ShortcutFixResult]:
            async with semaphore:
                return await self.fix_shortcut(location, path)

        results = await asyncio.gather(*[limited(loc, path) for loc, path in shortcuts])
        fixes = [r for r in results if r is not None]

        succeeded = sum(1 for r in fixes if r.success)
        logger.info(f"[QuickFix] {succeeded} fixed, {len(fixes) - succeeded} failed")
        return fixes
