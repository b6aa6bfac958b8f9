"""
Rename Ledger

Durable record of install folders that were renamed out of the way for a
deep repair. A renamed folder is always `<original><TEMP_SUFFIX>`, so the
original name can be recovered from the folder alone if the ledger is lost;
the ledger in turn records the app id and time of each rename.

Ledger files live in ~/.local/share/shortcut-fixer/ledgers/, one JSON list
per library. All mutations for a library are serialized by a per-library lock.
"""
import hashlib
import json
import logging
import os
import threading
from typing import Dict, List, Optional

from ..errors import LedgerEntryNotFound, LedgerIOError, RenameConflict
from ..models import InstalledApp, RenameLedgerEntry
from ..utils.paths import COMMON_DIR_NAME, LEDGER_DIR, normalize_library_path

logger = logging.getLogger(__name__)

TEMP_SUFFIX = "_temp_rename"

_library_locks: Dict[str, threading.RLock] = {}
_library_locks_guard = threading.Lock()


def _library_lock(library_path: str) -> threading.RLock:
    key = normalize_library_path(library_path)
    with _library_locks_guard:
        lock = _library_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _library_locks[key] = lock
        return lock


def to_temp_name(original_name: str, suffix: str = TEMP_SUFFIX) -> str:
    return f"{original_name}{suffix}"


def is_temp_name(name: str, suffix: str = TEMP_SUFFIX) -> bool:
    return name.endswith(suffix) and len(name) > len(suffix)


def from_temp_name(temp_name: str, suffix: str = TEMP_SUFFIX) -> str:
    if not is_temp_name(temp_name, suffix):
        raise ValueError(f"'{temp_name}' is not a repair temp folder name")
    return temp_name[:-len(suffix)]


class LedgerStore:
    """File-backed ledger for one library: a plain JSON list of entries."""

    def __init__(self, library_path: str, ledger_dir: str = LEDGER_DIR):
        self.library_path = library_path
        digest = hashlib.sha1(normalize_library_path(library_path).encode('utf-8')).hexdigest()[:16]
        self.path = os.path.join(ledger_dir, f"{digest}.json")

    def load(self) -> List[RenameLedgerEntry]:
        """
        Raises:
            LedgerIOError: the ledger exists but cannot be read or decoded.
        """
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("ledger is not a JSON list")
            return [RenameLedgerEntry.from_dict(item) for item in data]
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise LedgerIOError(self.path, e) from e

    def save(self, entries: List[RenameLedgerEntry]) -> None:
        """
        Atomically replace the ledger file.

        Raises:
            LedgerIOError: the ledger could not be written.
        """
        tmp_path = self.path + '.tmp'
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump([entry.to_dict() for entry in entries], f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise LedgerIOError(self.path, e) from e
        logger.debug(f"[Ledger] Saved {len(entries)} entries to {self.path}")

    def quarantine(self) -> Optional[str]:
        """Move an unreadable ledger aside so a fresh one can be written."""
        if not os.path.exists(self.path):
            return None
        target = self.path + '.corrupt'
        try:
            os.replace(self.path, target)
        except OSError as e:
            raise LedgerIOError(self.path, e) from e
        logger.warning(f"[Ledger] Moved unreadable ledger to {target}")
        return target


class RenameLedger:
    """Rename operations for the install folders of one library."""

    def __init__(self, library_path: str, store: Optional[LedgerStore] = None,
                 temp_suffix: str = TEMP_SUFFIX, ledger_dir: Optional[str] = None):
        self.library_path = os.path.abspath(library_path)
        self.common_path = os.path.join(self.library_path, COMMON_DIR_NAME)
        self.temp_suffix = temp_suffix
        if store is None:
            store = LedgerStore(self.library_path, ledger_dir or LEDGER_DIR)
        self.store = store
        self._key = normalize_library_path(self.library_path)
        self._lock = _library_lock(self.library_path)

    def _owns(self, entry: RenameLedgerEntry) -> bool:
        return normalize_library_path(entry.library_path) == self._key

    def entries(self) -> List[RenameLedgerEntry]:
        """Outstanding renames for this library."""
        with self._lock:
            return [e for e in self.store.load() if self._owns(e)]

    def begin_rename(self, app: InstalledApp) -> str:
        """
        Rename the app's install folder to its temp name and record it.

        Raises:
            RenameConflict: a rename is already outstanding for this folder.
            LedgerIOError: the folder is missing, or the rename/persist failed.
        """
        original_name = app.install_dir or os.path.basename(os.path.normpath(app.path))
        temp_name = to_temp_name(original_name, self.temp_suffix)
        original_path = os.path.join(self.common_path, original_name)
        temp_path = os.path.join(self.common_path, temp_name)

        with self._lock:
            entries = self.store.load()

            if is_temp_name(original_name, self.temp_suffix):
                raise RenameConflict(self.library_path, original_name, temp_name,
                                     "folder name already carries the repair marker")
            for entry in entries:
                if self._owns(entry) and entry.original_name == original_name:
                    raise RenameConflict(self.library_path, original_name, entry.temp_name,
                                         "ledger entry outstanding")
            if os.path.lexists(temp_path):
                raise RenameConflict(self.library_path, original_name, temp_name,
                                     "temp folder already exists")
            if not os.path.isdir(original_path):
                raise LedgerIOError(original_path, "install folder not found")

            try:
                os.rename(original_path, temp_path)
            except OSError as e:
                raise LedgerIOError(original_path, e) from e

            entries.append(RenameLedgerEntry(
                app_id=str(app.app_id),
                library_path=self.library_path,
                original_name=original_name,
                temp_name=temp_name,
            ))
            try:
                self.store.save(entries)
            except LedgerIOError:
                logger.error(f"[Ledger] Could not record rename of {original_name}, rolling back")
                try:
                    os.rename(temp_path, original_path)
                except OSError as rollback_error:
                    logger.critical(
                        f"[Ledger] Rollback failed, {temp_name} must be restored by cleanup: {rollback_error}"
                    )
                raise

        logger.info(f"[Ledger] Renamed {original_name} -> {temp_name} (app {app.app_id})")
        return temp_name

    def revert_rename(self, temp_name: str) -> str:
        """
        Rename a temp folder back to its recorded original name.

        Returns the original folder name.

        Raises:
            LedgerEntryNotFound: nothing recorded for temp_name.
            LedgerIOError: temp folder missing, original name taken, or rename failed.
        """
        with self._lock:
            entries = self.store.load()
            entry = next(
                (e for e in entries if self._owns(e) and e.temp_name == temp_name),
                None
            )
            if entry is None:
                raise LedgerEntryNotFound(self.library_path, temp_name)

            temp_path = os.path.join(self.common_path, entry.temp_name)
            original_path = os.path.join(self.common_path, entry.original_name)
            if not os.path.isdir(temp_path):
                raise LedgerIOError(temp_path, "temp folder is missing")
            if os.path.lexists(original_path):
                raise LedgerIOError(original_path, "original folder name is already in use")

            try:
                os.rename(temp_path, original_path)
            except OSError as e:
                raise LedgerIOError(temp_path, e) from e

            entries.remove(entry)
            try:
                self.store.save(entries)
            except LedgerIOError as e:
                # Folder is back in place; the stale entry is dropped by cleanup_orphans
                logger.error(f"[Ledger] Reverted {temp_name} but could not update ledger: {e}")

        logger.info(f"[Ledger] Reverted {temp_name} -> {entry.original_name}")
        return entry.original_name

    def cleanup_orphans(self) -> List[str]:
        """
        Restore every temp-named folder in the library, with or without a
        ledger entry. Returns the original names that were restored.
        """
        restored: List[str] = []

        with self._lock:
            try:
                entries = self.store.load()
            except LedgerIOError as e:
                logger.error(f"[Ledger] {e}; recovering from folder names only")
                self.store.quarantine()
                entries = []
            remaining = list(entries)

            try:
                names = sorted(os.listdir(self.common_path))
            except FileNotFoundError:
                logger.info(f"[Ledger] No app storage folder at {self.common_path}")
                names = []
            except OSError as e:
                raise LedgerIOError(self.common_path, e) from e

            for name in names:
                temp_path = os.path.join(self.common_path, name)
                if not is_temp_name(name, self.temp_suffix) or not os.path.isdir(temp_path):
                    continue
                original_name = from_temp_name(name, self.temp_suffix)
                original_path = os.path.join(self.common_path, original_name)
                if os.path.lexists(original_path):
                    logger.warning(
                        f"[Ledger] Not restoring {name}: {original_name} already exists"
                    )
                    continue
                try:
                    os.rename(temp_path, original_path)
                except OSError as e:
                    logger.error(f"[Ledger] Failed to restore {name}: {e}")
                    continue
                logger.info(f"[Ledger] Restored {name} -> {original_name}")
                restored.append(original_name)
                remaining = [
                    e for e in remaining
                    if not (self._owns(e) and e.temp_name == name)
                ]

            # Entries whose folder is already back under its original name
            for entry in list(remaining):
                if not self._owns(entry):
                    continue
                temp_exists = os.path.isdir(os.path.join(self.common_path, entry.temp_name))
                original_exists = os.path.isdir(os.path.join(self.common_path, entry.original_name))
                if not temp_exists and original_exists:
                    logger.info(f"[Ledger] Dropping stale entry for {entry.original_name}")
                    remaining.remove(entry)

            if remaining != entries:
                self.store.save(remaining)

        if restored:
            logger.info(f"[Ledger] Cleaned up {len(restored)} folder(s) in {self.library_path}")
        return restored
