"""
Steam library folder discovery.

A library is a `steamapps` directory: it holds the appmanifest_<id>.acf files
and the `common/` directory with one folder per installed game. The main
library lists every other library in steamapps/libraryfolders.vdf.
"""
import logging
import os
from typing import Any, Dict, List

from ..errors import LibraryNotFound, MalformedManifest
from ..manifests.parser import load_manifest
from ..utils.paths import (
    COMMON_DIR_NAME,
    LIBRARY_FOLDERS_FILE,
    STEAMAPPS_DIR_NAME,
    normalize_library_path,
)

logger = logging.getLogger(__name__)


def resolve_steamapps(path: str) -> str:
    """
    Accept either a steamapps directory or a Steam root that contains one.

    Raises:
        LibraryNotFound: neither layout is present.
    """
    path = os.path.abspath(os.path.expanduser(str(path)))
    if not os.path.isdir(path):
        raise LibraryNotFound(path)

    if os.path.basename(os.path.normpath(path)).lower() == STEAMAPPS_DIR_NAME:
        return path

    nested = os.path.join(path, STEAMAPPS_DIR_NAME)
    if os.path.isdir(nested):
        return nested

    # Libraries with a nonstandard name still work if they look like one
    if os.path.isdir(os.path.join(path, COMMON_DIR_NAME)):
        return path

    raise LibraryNotFound(path)


def common_dir(steamapps: str) -> str:
    """App-storage directory of a library."""
    return os.path.join(steamapps, COMMON_DIR_NAME)


def _library_roots(tree: Dict[str, Any]) -> List[str]:
    """Extract library root paths from a parsed libraryfolders.vdf."""
    block = None
    for key, value in tree.items():
        if key.lower() == 'libraryfolders' and isinstance(value, dict):
            block = value
            break
    if block is None:
        return []

    roots = []
    for key, value in block.items():
        if isinstance(value, dict):
            path = value.get('path')
        elif key.isdigit():
            # Pre-2021 format: "1" "D:\\SteamLibrary"
            path = value
        else:
            path = None
        if path:
            roots.append(path)
    return roots


def discover_libraries(steamapps: str) -> List[str]:
    """
    Return the given library followed by every other library listed in its
    libraryfolders.vdf that exists on disk. Duplicates are removed.
    """
    libraries = [steamapps]
    seen = {normalize_library_path(steamapps)}

    library_file = os.path.join(steamapps, LIBRARY_FOLDERS_FILE)
    if not os.path.isfile(library_file):
        return libraries

    try:
        tree = load_manifest(library_file)
    except (OSError, MalformedManifest) as e:
        logger.warning(f"[Libraries] Could not read {library_file}: {e}")
        return libraries

    for root in _library_roots(tree):
        candidate = os.path.join(root, STEAMAPPS_DIR_NAME)
        if not os.path.isdir(candidate):
            logger.debug(f"[Libraries] Skipping missing library {candidate}")
            continue
        key = normalize_library_path(candidate)
        if key in seen:
            continue
        seen.add(key)
        libraries.append(candidate)

    logger.info(f"[Libraries] Found {len(libraries)} Steam library folders")
    return libraries
