from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
# The package lives under py_modules like a Decky plugin
sys.path.insert(0, str(ROOT / "py_modules"))


def write_manifest(steamapps: Path, app_id: str, name: str, installdir: str, create_dir: bool = True) -> Path:
    path = steamapps / f"appmanifest_{app_id}.acf"
    path.write_text(
        '"AppState"\n'
        '{\n'
        f'\t"appid"\t\t"{app_id}"\n'
        '\t"Universe"\t\t"1"\n'
        f'\t"name"\t\t"{name}"\n'
        '\t"StateFlags"\t\t"4"\n'
        f'\t"installdir"\t\t"{installdir}"\n'
        '}\n',
        encoding="utf-8",
    )
    if create_dir:
        (steamapps / "common" / installdir).mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def steamapps(tmp_path: Path) -> Path:
    library = tmp_path / "Steam" / "steamapps"
    (library / "common").mkdir(parents=True)
    return library


@pytest.fixture
def ledger_dir(tmp_path: Path) -> Path:
    return tmp_path / "ledgers"
