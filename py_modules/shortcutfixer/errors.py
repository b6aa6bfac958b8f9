"""Error taxonomy for Shortcut Fixer.

Every error carries the context needed to render an actionable message
(path, app id, underlying cause). Scanner and icon-repair errors are
collected per item; ledger and dispatch errors are raised to the caller.
"""
from typing import Optional


class ShortcutFixerError(Exception):
    """Base class for all Shortcut Fixer errors"""


class MalformedManifest(ShortcutFixerError):
    """A manifest file could not be parsed or is missing required fields"""

    def __init__(self, path: Optional[str], offset: Optional[int], reason: str):
        self.path = path
        self.offset = offset
        self.reason = reason
        where = path or "<text>"
        if offset is not None:
            where = f"{where} (byte {offset})"
        super().__init__(f"Malformed manifest {where}: {reason}")


class LibraryNotFound(ShortcutFixerError):
    """The configured path does not contain a Steam library"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No Steam library found at {path}")


class SteamNotFound(ShortcutFixerError):
    """The Steam installation directory could not be located"""

    def __init__(self, message: str = "Could not find Steam installation directory"):
        super().__init__(message)


class LedgerError(ShortcutFixerError):
    """Base class for rename ledger state errors"""


class RenameConflict(LedgerError):
    """An install directory already has a rename in flight"""

    def __init__(self, library_path: str, original_name: str, temp_name: str, reason: str = ""):
        self.library_path = library_path
        self.original_name = original_name
        self.temp_name = temp_name
        message = f"'{original_name}' is already being repaired in {library_path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class LedgerEntryNotFound(LedgerError):
    """No ledger entry matches the requested temp folder"""

    def __init__(self, library_path: str, temp_name: str):
        self.library_path = library_path
        self.temp_name = temp_name
        super().__init__(
            f"No rename recorded for '{temp_name}' in {library_path}; "
            f"the folder may have been changed outside Shortcut Fixer"
        )


class LedgerIOError(LedgerError):
    """A filesystem operation behind a ledger step failed"""

    def __init__(self, path: str, cause: object):
        self.path = path
        self.cause = cause
        super().__init__(f"I/O error on {path}: {cause}")


class ProtocolDispatchError(ShortcutFixerError):
    """The steam:// URL could not be handed to the system opener"""

    def __init__(self, url: str, cause: object):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to open Steam ({url}): {cause}")


class UnresolvedIcon(ShortcutFixerError):
    """No usable icon could be resolved for a shortcut"""

    def __init__(self, shortcut_path: str, app_id: str, reason: str):
        self.shortcut_path = shortcut_path
        self.app_id = app_id
        self.reason = reason
        super().__init__(reason)
