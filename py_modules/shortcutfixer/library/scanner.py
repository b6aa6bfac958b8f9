"""
Library & App Scanner

Enumerates installed Steam apps from appmanifest_<id>.acf files:
- Parses every manifest in each library (main library + libraryfolders.vdf)
- Validates the file-name app id against the manifest's appid field
- Resolves installdir under steamapps/common
- Filters Steam runtime packages via the exclusion set

Per-file problems never abort a scan; they are collected as warnings.
Scanning is read-only and holds no state between calls.
"""
import logging
import os
import re
from typing import Any, Dict, Iterable, List, Optional

from ..errors import MalformedManifest
from ..manifests.parser import load_manifest
from ..models import AppManifest, InstalledApp, ScanResult, ScanWarning
from .exclusions import is_excluded
from .folders import common_dir, discover_libraries, resolve_steamapps

logger = logging.getLogger(__name__)

MANIFEST_PATTERN = re.compile(r'^appmanifest_(\d+)\.acf$', re.IGNORECASE)


def _app_state(tree: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in tree.items():
        if key.lower() == 'appstate' and isinstance(value, dict):
            return value
    return tree


def _field(block: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive leaf lookup (older manifests use 'appID', 'InstallDir')."""
    value = block.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in block.items():
            if key.lower() == lowered:
                value = candidate
    return value if isinstance(value, str) else None


def read_app_manifest(manifest_path: str, steamapps: str) -> AppManifest:
    """
    Parse one appmanifest file.

    Raises:
        OSError: unreadable file.
        MalformedManifest: bad syntax, missing fields, or app id mismatch.
    """
    file_name = os.path.basename(manifest_path)
    match = MANIFEST_PATTERN.match(file_name)
    if not match:
        raise MalformedManifest(manifest_path, None, "file name is not appmanifest_<id>.acf")
    file_app_id = match.group(1)

    state = _app_state(load_manifest(manifest_path))
    app_id = _field(state, 'appid')
    name = _field(state, 'name')
    install_dir = _field(state, 'installdir')

    if not app_id:
        raise MalformedManifest(manifest_path, None, "missing 'appid'")
    if app_id.strip() != file_app_id:
        raise MalformedManifest(
            manifest_path, None,
            f"appid '{app_id}' does not match file name id '{file_app_id}'"
        )
    if not name:
        raise MalformedManifest(manifest_path, None, "missing 'name'")
    if not install_dir:
        raise MalformedManifest(manifest_path, None, "missing 'installdir'")
    if os.path.basename(install_dir) != install_dir or install_dir in ('.', '..'):
        raise MalformedManifest(manifest_path, None, f"invalid installdir '{install_dir}'")

    return AppManifest(
        app_id=file_app_id,
        name=name,
        install_dir=install_dir,
        library_path=steamapps,
        manifest_path=manifest_path,
    )


def scan_library(steamapps: str, exclusions: Optional[Iterable[str]] = None,
                 temp_suffix: Optional[str] = None) -> ScanResult:
    """Scan a single steamapps directory."""
    result = ScanResult(libraries=[steamapps])
    storage = common_dir(steamapps)

    try:
        file_names = sorted(os.listdir(steamapps))
    except OSError as e:
        logger.error(f"[Scanner] Cannot list {steamapps}: {e}")
        result.warnings.append(ScanWarning(steamapps, f"Cannot read library: {e}", "unreadable"))
        return result

    for file_name in file_names:
        if not MANIFEST_PATTERN.match(file_name):
            continue
        manifest_path = os.path.join(steamapps, file_name)

        try:
            manifest = read_app_manifest(manifest_path, steamapps)
        except MalformedManifest as e:
            logger.warning(f"[Scanner] Skipping {file_name}: {e}")
            result.warnings.append(ScanWarning(manifest_path, str(e), "malformed_manifest"))
            continue
        except OSError as e:
            logger.warning(f"[Scanner] Cannot read {file_name}: {e}")
            result.warnings.append(ScanWarning(manifest_path, f"Cannot read manifest: {e}", "unreadable"))
            continue

        if is_excluded(manifest.name, exclusions):
            logger.debug(f"[Scanner] Excluded {manifest.name} ({manifest.app_id})")
            continue

        install_path = os.path.join(storage, manifest.install_dir)
        exists = os.path.isdir(install_path)
        if not exists:
            message = f"Install folder '{manifest.install_dir}' for {manifest.name} ({manifest.app_id}) is missing"
            if temp_suffix and os.path.isdir(install_path + temp_suffix):
                message += "; a repair was interrupted, run cleanup to restore it"
            logger.warning(f"[Scanner] {message}")
            result.warnings.append(ScanWarning(manifest_path, message, "missing_install_dir"))

        result.apps.append(InstalledApp(
            name=manifest.name,
            app_id=manifest.app_id,
            path=install_path,
            install_dir=manifest.install_dir,
            library_path=steamapps,
            exists=exists,
        ))

    return result


def sort_apps(apps: List[InstalledApp]) -> List[InstalledApp]:
    return sorted(apps, key=lambda app: (app.name.casefold(), app.name, app.app_id))


def scan_games(library_path: str, exclusions: Optional[Iterable[str]] = None,
               temp_suffix: Optional[str] = None) -> ScanResult:
    """
    Scan the library at library_path and every library it references.

    Apps are deduplicated by app id (first library wins) and sorted by name.

    Raises:
        LibraryNotFound: library_path is not a Steam library.
    """
    steamapps = resolve_steamapps(library_path)
    combined = ScanResult()
    seen_app_ids = set()

    for library in discover_libraries(steamapps):
        logger.info(f"[Scanner] Scanning: {library}")
        partial = scan_library(library, exclusions, temp_suffix)
        combined.libraries.append(library)
        combined.warnings.extend(partial.warnings)
        for app in partial.apps:
            if app.app_id in seen_app_ids:
                logger.debug(f"[Scanner] Duplicate app {app.app_id} in {library}, keeping first")
                continue
            seen_app_ids.add(app.app_id)
            combined.apps.append(app)

    combined.apps = sort_apps(combined.apps)
    logger.info(f"[Scanner] Found {len(combined.apps)} games, {len(combined.warnings)} warnings")
    return combined


def build_app_index(apps: Iterable[InstalledApp]) -> Dict[str, str]:
    """app_id -> display name, for labelling shortcuts."""
    return {app.app_id: app.name for app in apps}
