"""
Deep Repair Orchestrator

Forces Steam to regenerate an app's shortcuts by making it believe the app
is uninstalled, then reinstalling it over the existing files:

    Ready -> RenamingOut (20%) -> UninstallTriggered (40%)
          -> AwaitingUninstallConfirm -> RenamingBack (60%)
          -> InstallTriggered (80%) -> AwaitingInstallConfirm -> Complete (100%)

Any failure moves the app to Error and the next selected app is processed.
Steam reports nothing back, so both waits end only when the user confirms
through confirm(). Apps are processed one at a time, in selection order.
"""
import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..errors import ShortcutFixerError
from ..library.exclusions import is_excluded
from ..models import AppStatus, InstalledApp
from .ledger import RenameLedger
from .protocol import ProtocolDispatcher

logger = logging.getLogger(__name__)


class RepairState(str, Enum):
    READY = "ready"
    RENAMING_OUT = "renaming_out"
    UNINSTALL_TRIGGERED = "uninstall_triggered"
    AWAITING_UNINSTALL_CONFIRM = "awaiting_uninstall_confirm"
    RENAMING_BACK = "renaming_back"
    INSTALL_TRIGGERED = "install_triggered"
    AWAITING_INSTALL_CONFIRM = "awaiting_install_confirm"
    COMPLETE = "complete"
    ERROR = "error"


# Progress milestone reached on entering each state
STATE_PROGRESS = {
    RepairState.READY: 0,
    RepairState.RENAMING_OUT: 20,
    RepairState.UNINSTALL_TRIGGERED: 40,
    RepairState.AWAITING_UNINSTALL_CONFIRM: 40,
    RepairState.RENAMING_BACK: 60,
    RepairState.INSTALL_TRIGGERED: 80,
    RepairState.AWAITING_INSTALL_CONFIRM: 80,
    RepairState.COMPLETE: 100,
}

WAITING_STATES = (RepairState.AWAITING_UNINSTALL_CONFIRM, RepairState.AWAITING_INSTALL_CONFIRM)

# Human-readable step labels for the frontend
STATE_MESSAGES = {
    RepairState.READY: "Ready",
    RepairState.RENAMING_OUT: "Renaming game folder...",
    RepairState.UNINSTALL_TRIGGERED: "Opening Steam for uninstall...",
    RepairState.AWAITING_UNINSTALL_CONFIRM: "Complete the uninstall in Steam, then continue.",
    RepairState.RENAMING_BACK: "Restoring folder name...",
    RepairState.INSTALL_TRIGGERED: "Opening Steam for install...",
    RepairState.AWAITING_INSTALL_CONFIRM: "Start the installation in Steam, then continue.",
    RepairState.COMPLETE: "Complete",
    RepairState.ERROR: "Error",
}


class RepairJob:
    """Repair state of one selected app."""

    def __init__(self, app: InstalledApp):
        self.app = app
        self.state = RepairState.READY
        self.progress = 0
        self.error: Optional[str] = None
        self.temp_name: Optional[str] = None
        # Set while suspended in a waiting state; resolved by confirm()
        self._resume: Optional[asyncio.Future] = None

    @property
    def app_id(self) -> str:
        return self.app.app_id

    @property
    def waiting(self) -> bool:
        return (
            self.state in WAITING_STATES
            and self._resume is not None
            and not self._resume.done()
        )

    @property
    def ui_status(self) -> str:
        if self.state == RepairState.READY:
            return AppStatus.READY.value
        if self.state == RepairState.COMPLETE:
            return AppStatus.COMPLETE.value
        if self.state == RepairState.ERROR:
            return AppStatus.ERROR.value
        return AppStatus.PROCESSING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'app_id': self.app.app_id,
            'name': self.app.name,
            'state': self.state.value,
            'status': self.ui_status,
            'progress': self.progress,
            'message': self.error if self.state == RepairState.ERROR else STATE_MESSAGES[self.state],
            'waiting_for_confirmation': self.waiting,
            'temp_name': self.temp_name,
            'error': self.error,
        }


class DeepRepairOrchestrator:
    """
    Runs the deep repair pipeline over a selection of apps.

    Args:
        ledger_for: returns the RenameLedger of the library holding an app
        dispatcher: sends steam://uninstall and steam://install requests
        exclusions: runtime package names that must never be repaired
        on_update: called (or awaited) with the RepairJob after every transition
    """

    def __init__(self, ledger_for: Callable[[InstalledApp], RenameLedger],
                 dispatcher: Optional[ProtocolDispatcher] = None,
                 exclusions: Optional[Iterable[str]] = None,
                 on_update: Optional[Callable[[RepairJob], Any]] = None):
        self.ledger_for = ledger_for
        self.dispatcher = dispatcher or ProtocolDispatcher()
        self.exclusions = list(exclusions) if exclusions is not None else None
        self.on_update = on_update
        self.jobs: List[RepairJob] = []
        self.current: Optional[RepairJob] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def _transition(self, job: RepairJob, state: RepairState, error: Optional[str] = None) -> None:
        job.state = state
        if state in STATE_PROGRESS:
            job.progress = STATE_PROGRESS[state]
        job.error = error
        logger.debug(f"[Repair] {job.app.name} ({job.app_id}) -> {state.value}")
        if self.on_update:
            result = self.on_update(job)
            if inspect.isawaitable(result):
                await result

    async def _wait_for_confirmation(self, job: RepairJob, state: RepairState) -> None:
        job._resume = asyncio.get_running_loop().create_future()
        try:
            await self._transition(job, state)
            logger.info(f"[Repair] Waiting for user confirmation: {job.app.name} ({state.value})")
            await job._resume
        finally:
            job._resume = None

    async def _process(self, job: RepairJob) -> bool:
        app = job.app
        if is_excluded(app.name, self.exclusions):
            logger.warning(f"[Repair] Refusing to repair excluded package {app.name}")
            await self._transition(job, RepairState.ERROR, f"{app.name} is a Steam runtime package")
            return False

        try:
            await self._transition(job, RepairState.RENAMING_OUT)
            ledger = self.ledger_for(app)
            job.temp_name = ledger.begin_rename(app)

            await self._transition(job, RepairState.UNINSTALL_TRIGGERED)
            self.dispatcher.open_external_action('uninstall', app.app_id)
            await self._wait_for_confirmation(job, RepairState.AWAITING_UNINSTALL_CONFIRM)

            await self._transition(job, RepairState.RENAMING_BACK)
            ledger.revert_rename(job.temp_name)

            await self._transition(job, RepairState.INSTALL_TRIGGERED)
            self.dispatcher.open_external_action('install', app.app_id)
            await self._wait_for_confirmation(job, RepairState.AWAITING_INSTALL_CONFIRM)
        except (ShortcutFixerError, OSError, ValueError) as e:
            logger.error(f"[Repair] {app.name} ({app.app_id}) failed during {job.state.value}: {e}")
            await self._transition(job, RepairState.ERROR, str(e))
            return False
        except asyncio.CancelledError:
            logger.warning(f"[Repair] {app.name} cancelled during {job.state.value}")
            await self._transition(job, RepairState.ERROR, "cancelled")
            raise
        except Exception as e:
            logger.error(f"[Repair] Unexpected error repairing {app.name}: {e}", exc_info=True)
            await self._transition(job, RepairState.ERROR, str(e))
            return False

        await self._transition(job, RepairState.COMPLETE)
        logger.info(f"[Repair] {app.name} completed successfully")
        return True

    async def run(self, apps: Iterable[InstalledApp]) -> List[RepairJob]:
        """
        Repair each app in order. Returns the jobs with their final state.

        Raises:
            RuntimeError: a repair run is already in progress.
        """
        if self._running:
            raise RuntimeError("A deep repair is already running")
        self._running = True
        self.jobs = [RepairJob(app) for app in apps]
        succeeded = 0
        try:
            for job in self.jobs:
                self.current = job
                if await self._process(job):
                    succeeded += 1
        finally:
            self.current = None
            self._running = False

        logger.info(f"[Repair] Processed {len(self.jobs)} games, {succeeded} completed")
        return self.jobs

    def confirm(self, app_id: Optional[str] = None) -> bool:
        """
        Resume the app waiting for confirmation. Returns False if no app
        (or not the given one) is waiting.
        """
        job = self.current
        if job is None or not job.waiting:
            return False
        if app_id is not None and str(app_id) != job.app_id:
            return False
        job._resume.set_result(True)
        return True

    def status(self) -> Dict[str, Any]:
        return {
            'is_running': self._running,
            'current_app_id': self.current.app_id if self.current else None,
            'waiting_for_confirmation': bool(self.current and self.current.waiting),
            'jobs': [job.to_dict() for job in self.jobs],
        }
