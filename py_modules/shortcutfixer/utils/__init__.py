# Utils package
from .paths import (
    ensure_data_dir,
    normalize_library_path,
    SHORTCUT_FIXER_DATA_DIR,
    SETTINGS_PATH,
    LEDGER_DIR,
    LOG_DIR,
    LOG_FILE,
    STEAMAPPS_DIR_NAME,
    COMMON_DIR_NAME,
    LIBRARY_FOLDERS_FILE,
)
from .logs import setup_logging

__all__ = [
    'ensure_data_dir',
    'normalize_library_path',
    'setup_logging',
    'SHORTCUT_FIXER_DATA_DIR',
    'SETTINGS_PATH',
    'LEDGER_DIR',
    'LOG_DIR',
    'LOG_FILE',
    'STEAMAPPS_DIR_NAME',
    'COMMON_DIR_NAME',
    'LIBRARY_FOLDERS_FILE',
]
