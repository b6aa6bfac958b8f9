from .exclusions import DEFAULT_EXCLUSIONS, is_excluded
from .folders import resolve_steamapps, discover_libraries, common_dir
from .scanner import scan_games, scan_library, read_app_manifest, build_app_index
