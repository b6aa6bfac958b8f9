"""Shortcut Fixer file path constants and utilities."""

import os


# Shortcut Fixer data directory (overridable for portable installs and tests)
SHORTCUT_FIXER_DATA_DIR = os.environ.get(
    "SHORTCUT_FIXER_DATA_DIR",
    os.path.expanduser("~/.local/share/shortcut-fixer"),
)

# Data files
SETTINGS_PATH = os.path.join(SHORTCUT_FIXER_DATA_DIR, "settings.json")
LEDGER_DIR = os.path.join(SHORTCUT_FIXER_DATA_DIR, "ledgers")
LOG_DIR = os.path.join(SHORTCUT_FIXER_DATA_DIR, "logs")
LOG_FILE = os.path.join(LOG_DIR, "shortcut-fixer.log")

# Steam library layout
STEAMAPPS_DIR_NAME = "steamapps"
COMMON_DIR_NAME = "common"
LIBRARY_FOLDERS_FILE = "libraryfolders.vdf"

# Default Steam install locations
DEFAULT_WINDOWS_STEAM_PATH = r"C:\Program Files (x86)\Steam"
DEFAULT_LINUX_STEAM_PATHS = [
    os.path.expanduser("~/.steam/steam"),
    os.path.expanduser("~/.local/share/Steam"),
]


def ensure_data_dir() -> None:
    """Ensure the Shortcut Fixer data directory exists."""
    os.makedirs(SHORTCUT_FIXER_DATA_DIR, exist_ok=True)


def normalize_library_path(path: str) -> str:
    """Canonical form of a library path, used as ledger and lock key."""
    return os.path.normcase(os.path.realpath(os.path.expanduser(str(path))))
