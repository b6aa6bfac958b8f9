from .icons import ShortcutIconFixer, DEFAULT_ICON_CANDIDATES, resolve_icon, icon_candidates
from .locations import ShortcutLocation, default_shortcut_locations, find_steam_install
from .cdn import IconDownloader, IconDownloadError
from .url_file import read_url_shortcut, extract_game_id, get_icon_file, set_icon_file
