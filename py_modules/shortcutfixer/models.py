"""
Data models shared between the scanner, the repair engine and the frontend.

Scan results are recomputed on every scan; ShortcutFixResult only lives for
one quick-fix run. RenameLedgerEntry is the only persisted record.
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class AppStatus(str, Enum):
    READY = "ready"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class AppManifest:
    """Fields read from one appmanifest_<id>.acf"""
    app_id: str
    name: str
    install_dir: str                 # Folder name under steamapps/common
    library_path: str
    manifest_path: str


@dataclass
class InstalledApp:
    """Scanner output unit. status is always 'ready' here."""
    name: str
    app_id: str
    path: str                        # Fully resolved install directory
    status: str = AppStatus.READY.value
    install_dir: str = ""
    library_path: str = ""
    exists: bool = True              # False when the manifest points at a missing folder

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScanWarning:
    path: str
    message: str
    kind: str = "malformed_manifest"   # malformed_manifest|missing_install_dir|unreadable

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScanResult:
    apps: List[InstalledApp] = field(default_factory=list)
    warnings: List[ScanWarning] = field(default_factory=list)
    libraries: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'games': [app.to_dict() for app in self.apps],
            'warnings': [w.to_dict() for w in self.warnings],
            'libraries': list(self.libraries),
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class RenameLedgerEntry:
    """Durable evidence that an install directory is mid-repair"""
    app_id: str
    library_path: str
    original_name: str
    temp_name: str
    created_at: str = field(default_factory=_utc_now)

    @property
    def key(self) -> tuple:
        return (self.library_path, self.original_name)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenameLedgerEntry':
        return cls(
            app_id=str(data.get('app_id', '')),
            library_path=data['library_path'],
            original_name=data['original_name'],
            temp_name=data['temp_name'],
            created_at=data.get('created_at') or _utc_now(),
        )


@dataclass
class ShortcutFixResult:
    """Outcome for one examined shortcut file"""
    name: str
    game_id: str
    icon_url: str
    location: str
    success: bool
    error: Optional[str] = None
    shortcut_path: str = ""
    changed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
