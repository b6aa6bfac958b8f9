import os
import sys
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

# Add py_modules to the path when running from a source checkout
PLUGIN_DIR = os.path.dirname(os.path.abspath(__file__))
PY_MODULES_DIR = os.path.join(PLUGIN_DIR, "py_modules")
if os.path.isdir(PY_MODULES_DIR) and PY_MODULES_DIR not in sys.path:
    sys.path.insert(0, PY_MODULES_DIR)

from shortcutfixer import __version__
from shortcutfixer.errors import LedgerEntryNotFound, LedgerIOError, ShortcutFixerError
from shortcutfixer.library import (
    build_app_index,
    common_dir,
    discover_libraries,
    is_excluded,
    resolve_steamapps,
    scan_games,
    scan_library,
)
from shortcutfixer.models import InstalledApp, ScanResult
from shortcutfixer.repair import (
    DeepRepairOrchestrator,
    ProtocolDispatcher,
    RenameLedger,
    RepairJob,
)
from shortcutfixer.settings import FixerSettings, load_settings
from shortcutfixer.shortcuts import (
    IconDownloader,
    ShortcutIconFixer,
    ShortcutLocation,
    default_shortcut_locations,
    find_steam_install,
)
from shortcutfixer.utils import LEDGER_DIR, setup_logging

logger = logging.getLogger("shortcutfixer.plugin")


def _error(e: BaseException) -> Dict[str, Any]:
    return {'success': False, 'error': str(e), 'error_type': type(e).__name__}


class Plugin:
    """Backend entry points called by the Shortcut Fixer frontend"""

    def __init__(self, settings: Optional[FixerSettings] = None,
                 dispatcher: Optional[ProtocolDispatcher] = None,
                 ledger_dir: str = LEDGER_DIR,
                 location_provider: Callable[[], List[ShortcutLocation]] = default_shortcut_locations,
                 downloader: Optional[IconDownloader] = None):
        self.settings = settings or FixerSettings()
        self.dispatcher = dispatcher or ProtocolDispatcher()
        self.ledger_dir = ledger_dir
        self.location_provider = location_provider
        self.downloader = downloader
        self.orchestrator: Optional[DeepRepairOrchestrator] = None
        self._repair_task: Optional[asyncio.Task] = None
        self._last_scan: Optional[ScanResult] = None

    async def _main(self):
        setup_logging()
        self.settings = load_settings()
        logger.info(f"[Plugin] Shortcut Fixer {__version__} loaded")

    async def _unload(self):
        """Cleanup on unload"""
        if self._repair_task and not self._repair_task.done():
            logger.warning("[Plugin] Cancelling deep repair on unload")
            self._repair_task.cancel()
            try:
                await self._repair_task
            except asyncio.CancelledError:
                pass
        if self.downloader:
            await self.downloader.close()
        logger.info("[Plugin] Shortcut Fixer unloaded")

    def _ledger(self, library: str) -> RenameLedger:
        return RenameLedger(library, temp_suffix=self.settings.temp_suffix, ledger_dir=self.ledger_dir)

    def _repair_active(self) -> bool:
        return self._repair_task is not None and not self._repair_task.done()

    def _libraries(self, library_path: str) -> List[str]:
        return discover_libraries(resolve_steamapps(library_path))

    def _rename_outstanding(self, library: str, folder: str) -> bool:
        """True if folder is already renamed out (temp folder or ledger entry)."""
        if os.path.isdir(os.path.join(common_dir(library), folder + self.settings.temp_suffix)):
            return True
        try:
            return any(entry.original_name == folder for entry in self._ledger(library).entries())
        except LedgerIOError as e:
            logger.warning(f"[Plugin] Skipping unreadable ledger for {library}: {e}")
            return False

    def _find_app(self, library_path: str, app_path: str) -> InstalledApp:
        """
        Locate an install folder (name or full path) across all libraries.
        A folder that is mid-repair is still found, so begin_rename can report the conflict.
        """
        folder = os.path.basename(os.path.normpath(app_path))
        for library in self._libraries(library_path):
            candidate = os.path.join(common_dir(library), folder)
            if not os.path.isdir(candidate) and not self._rename_outstanding(library, folder):
                continue
            for app in scan_library(library, exclusions=()).apps:
                if app.install_dir == folder:
                    return app
            return InstalledApp(name=folder, app_id='', path=candidate,
                                install_dir=folder, library_path=library)
        raise LedgerIOError(folder, "Game folder not found in any library")

    # ------------------------------------------------------------------
    # Library scan
    # ------------------------------------------------------------------

    async def scan_games(self, library_path: str) -> Dict[str, Any]:
        """Scan all libraries reachable from library_path"""
        try:
            result = scan_games(library_path, self.settings.exclusions, self.settings.temp_suffix)
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Scan failed: {e}")
            return _error(e)
        self._last_scan = result
        return {'success': True, **result.to_dict()}

    # ------------------------------------------------------------------
    # Rename ledger
    # ------------------------------------------------------------------

    async def rename_game_folder(self, library_path: str, app_path: str) -> Dict[str, Any]:
        try:
            app = self._find_app(library_path, app_path)
            if is_excluded(app.name, self.settings.exclusions):
                return {'success': False, 'error': f"{app.name} is a Steam runtime package",
                        'error_type': 'Excluded'}
            temp_name = self._ledger(app.library_path).begin_rename(app)
            return {'success': True, 'temp_name': temp_name}
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Rename failed for {app_path}: {e}")
            return _error(e)

    async def revert_game_folder(self, library_path: str, temp_name: str) -> Dict[str, Any]:
        try:
            for library in self._libraries(library_path):
                ledger = self._ledger(library)
                try:
                    entries = ledger.entries()
                except LedgerIOError as e:
                    logger.warning(f"[Plugin] Skipping unreadable ledger for {library}: {e}")
                    continue
                if any(entry.temp_name == temp_name for entry in entries):
                    original = ledger.revert_rename(temp_name)
                    return {'success': True, 'original_name': original}
            raise LedgerEntryNotFound(library_path, temp_name)
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Revert failed for {temp_name}: {e}")
            return _error(e)

    async def cleanup_temp_folders(self, library_path: str) -> Dict[str, Any]:
        """Restore folders left renamed by an interrupted deep repair"""
        if self._repair_active():
            return {'success': False, 'error': 'A deep repair is in progress', 'error_type': 'Busy'}
        cleaned: List[str] = []
        try:
            for library in self._libraries(library_path):
                cleaned.extend(self._ledger(library).cleanup_orphans())
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Cleanup failed: {e}")
            return {**_error(e), 'cleaned': cleaned}
        return {'success': True, 'cleaned': cleaned}

    async def get_pending_renames(self, library_path: str) -> Dict[str, Any]:
        try:
            entries = []
            for library in self._libraries(library_path):
                entries.extend(entry.to_dict() for entry in self._ledger(library).entries())
            return {'success': True, 'entries': entries}
        except ShortcutFixerError as e:
            return _error(e)

    # ------------------------------------------------------------------
    # Quick fix
    # ------------------------------------------------------------------

    async def quick_fix_shortcuts(self) -> Dict[str, Any]:
        """Repair icon references of Steam shortcuts on the desktop and Start Menu"""
        try:
            steam_path = find_steam_install(self.settings.steam_path)
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Quick fix failed: {e}")
            return _error(e)

        if self.downloader is None and self.settings.download_missing_icons:
            self.downloader = IconDownloader()

        fixer = ShortcutIconFixer(
            steam_path,
            self.location_provider(),
            app_index=build_app_index(self._last_scan.apps) if self._last_scan else None,
            exclusions=self.settings.exclusions,
            icon_candidates=self.settings.icon_candidates,
            downloader=self.downloader if self.settings.download_missing_icons else None,
            max_workers=self.settings.max_workers,
        )
        results = await fixer.fix_all()
        return {'success': True, 'results': [r.to_dict() for r in results]}

    # ------------------------------------------------------------------
    # Deep repair
    # ------------------------------------------------------------------

    async def start_deep_repair(self, library_path: str, app_ids: List[str]) -> Dict[str, Any]:
        """Start the rename -> uninstall -> revert -> install cycle for the selected apps"""
        if self._repair_active():
            return {'success': False, 'error': 'A deep repair is already running', 'error_type': 'Busy'}

        try:
            scan = scan_games(library_path, self.settings.exclusions, self.settings.temp_suffix)
        except ShortcutFixerError as e:
            logger.error(f"[Plugin] Deep repair scan failed: {e}")
            return _error(e)
        self._last_scan = scan

        by_id = {app.app_id: app for app in scan.apps}
        selected = [by_id[str(app_id)] for app_id in app_ids if str(app_id) in by_id]
        missing = [str(app_id) for app_id in app_ids if str(app_id) not in by_id]
        if missing:
            logger.warning(f"[Plugin] Not repairing unknown or excluded apps: {missing}")
        if not selected:
            return {'success': False, 'error': 'No repairable games selected', 'missing': missing}

        self.orchestrator = DeepRepairOrchestrator(
            ledger_for=lambda app: self._ledger(app.library_path),
            dispatcher=self.dispatcher,
            exclusions=self.settings.exclusions,
        )
        self._repair_task = asyncio.create_task(self.orchestrator.run(selected))
        logger.info(f"[Plugin] Deep repair started for {len(selected)} games")
        return {'success': True, 'queued': [app.app_id for app in selected], 'missing': missing}

    async def confirm_repair_step(self, app_id: Optional[str] = None) -> Dict[str, Any]:
        """User attests that Steam finished the uninstall/install step"""
        if not self.orchestrator or not self.orchestrator.confirm(app_id):
            return {'success': False, 'error': 'No game is waiting for confirmation'}
        return {'success': True}

    async def get_repair_status(self) -> Dict[str, Any]:
        if not self.orchestrator:
            return {'success': True, 'is_running': False, 'current_app_id': None,
                    'waiting_for_confirmation': False, 'jobs': []}
        return {'success': True, **self.orchestrator.status(), 'is_running': self._repair_active()}

    async def wait_for_repair(self) -> List[RepairJob]:
        if not self._repair_task:
            return []
        return await self._repair_task

    async def cancel_deep_repair(self) -> Dict[str, Any]:
        """Abandon the running repair; renamed folders stay recoverable by cleanup"""
        if not self._repair_task or self._repair_task.done():
            return {'success': False, 'message': 'No deep repair in progress'}
        logger.warning("[Plugin] Deep repair cancellation requested by user")
        self._repair_task.cancel()
        try:
            await self._repair_task
        except asyncio.CancelledError:
            pass
        return {'success': True, **self.orchestrator.status()}

    async def open_steam_action(self, action: str, app_id: str) -> Dict[str, Any]:
        try:
            self.dispatcher.open_external_action(action, app_id)
            return {'success': True}
        except (ShortcutFixerError, ValueError) as e:
            return _error(e)
