from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_manifest
from shortcutfixer.errors import LibraryNotFound
from shortcutfixer.library import discover_libraries, resolve_steamapps, scan_games, scan_library


def test_scan_collects_games_and_warnings(steamapps: Path) -> None:
    write_manifest(steamapps, "10", "Counter-Strike", "Counter-Strike")
    write_manifest(steamapps, "20", "Team Fortress Classic", "Team Fortress Classic")
    (steamapps / "appmanifest_30.acf").write_text('"AppState"\n{\n\t"appid" "30"\n', encoding="utf-8")

    result = scan_games(str(steamapps))

    assert [app.app_id for app in result.apps] == ["10", "20"]
    assert result.apps[0].path == str(steamapps / "common" / "Counter-Strike")
    assert all(app.status == "ready" for app in result.apps)
    assert len(result.warnings) == 1
    assert result.warnings[0].kind == "malformed_manifest"
    assert result.warnings[0].path.endswith("appmanifest_30.acf")


def test_scan_is_sorted_and_deterministic(steamapps: Path) -> None:
    write_manifest(steamapps, "300", "zeta", "zeta")
    write_manifest(steamapps, "100", "Alpha", "Alpha")
    write_manifest(steamapps, "200", "beta", "beta")

    first = scan_games(str(steamapps))
    second = scan_games(str(steamapps))

    assert [app.name for app in first.apps] == ["Alpha", "beta", "zeta"]
    assert first.to_dict() == second.to_dict()


def test_runtime_packages_are_excluded(steamapps: Path) -> None:
    write_manifest(steamapps, "228980", "Steamworks Common Redistributables", "Steamworks Shared")
    write_manifest(steamapps, "1628350", "Steam Linux Runtime 3.0 (sniper)", "SteamLinuxRuntime_sniper")
    write_manifest(steamapps, "1493710", "Proton Experimental", "Proton - Experimental")
    write_manifest(steamapps, "570", "Dota 2", "dota 2 beta")

    result = scan_games(str(steamapps))

    assert [app.name for app in result.apps] == ["Dota 2"]
    assert result.warnings == []


def test_custom_exclusions(steamapps: Path) -> None:
    write_manifest(steamapps, "1", "Demo Game", "Demo")
    write_manifest(steamapps, "2", "Proton Experimental", "Proton")

    result = scan_games(str(steamapps), exclusions=["Demo"])

    assert [app.name for app in result.apps] == ["Proton Experimental"]


def test_app_id_mismatch_is_a_warning(steamapps: Path) -> None:
    path = write_manifest(steamapps, "40", "Deathmatch Classic", "Deathmatch Classic")
    path.rename(steamapps / "appmanifest_41.acf")

    result = scan_library(str(steamapps))

    assert result.apps == []
    assert "does not match" in result.warnings[0].message


def test_missing_fields_are_warnings(steamapps: Path) -> None:
    (steamapps / "appmanifest_50.acf").write_text(
        '"AppState" { "appid" "50" "name" "Opposing Force" }', encoding="utf-8"
    )

    result = scan_library(str(steamapps))

    assert result.apps == []
    assert "installdir" in result.warnings[0].message


def test_missing_install_dir_is_listed(steamapps: Path) -> None:
    write_manifest(steamapps, "70", "Half-Life", "Half-Life", create_dir=False)

    result = scan_games(str(steamapps))

    assert len(result.apps) == 1
    assert result.apps[0].exists is False
    assert result.warnings[0].kind == "missing_install_dir"


def test_interrupted_repair_is_pointed_out(steamapps: Path) -> None:
    write_manifest(steamapps, "70", "Half-Life", "Half-Life", create_dir=False)
    (steamapps / "common" / "Half-Life_temp_rename").mkdir()

    result = scan_games(str(steamapps), temp_suffix="_temp_rename")

    assert "run cleanup" in result.warnings[0].message


def test_additional_libraries_from_libraryfolders(tmp_path: Path, steamapps: Path) -> None:
    second = tmp_path / "Games" / "SteamLibrary" / "steamapps"
    (second / "common").mkdir(parents=True)
    write_manifest(steamapps, "10", "Counter-Strike", "Counter-Strike")
    write_manifest(second, "80", "Condition Zero", "Condition Zero")
    # Same app in both libraries: the first library wins
    write_manifest(second, "10", "Counter-Strike", "Counter-Strike")

    steam_root = steamapps.parent
    (steamapps / "libraryfolders.vdf").write_text(
        '"libraryfolders"\n{\n'
        f'\t"0"\n\t{{\n\t\t"path"\t\t"{steam_root}"\n\t}}\n'
        f'\t"1"\n\t{{\n\t\t"path"\t\t"{second.parent}"\n\t}}\n'
        '}\n',
        encoding="utf-8",
    )

    result = scan_games(str(steam_root))

    assert [app.app_id for app in result.apps] == ["80", "10"]
    by_id = {app.app_id: app for app in result.apps}
    assert by_id["10"].library_path == str(steamapps)
    assert by_id["80"].library_path == str(second)
    assert result.libraries == [str(steamapps), str(second)]


def test_old_libraryfolders_format(tmp_path: Path, steamapps: Path) -> None:
    second = tmp_path / "Other" / "steamapps"
    (second / "common").mkdir(parents=True)
    (steamapps / "libraryfolders.vdf").write_text(
        f'"LibraryFolders"\n{{\n\t"TimeNextStatsReport"\t"0"\n\t"1"\t"{second.parent}"\n}}\n',
        encoding="utf-8",
    )

    assert discover_libraries(str(steamapps)) == [str(steamapps), str(second)]


def test_broken_libraryfolders_falls_back(steamapps: Path) -> None:
    (steamapps / "libraryfolders.vdf").write_text('"libraryfolders" {', encoding="utf-8")
    assert discover_libraries(str(steamapps)) == [str(steamapps)]


def test_resolve_steamapps_accepts_root_and_library(steamapps: Path) -> None:
    assert resolve_steamapps(str(steamapps)) == str(steamapps)
    assert resolve_steamapps(str(steamapps.parent)) == str(steamapps)


def test_not_a_library(tmp_path: Path) -> None:
    with pytest.raises(LibraryNotFound):
        scan_games(str(tmp_path / "missing"))
    with pytest.raises(LibraryNotFound):
        scan_games(str(tmp_path))


def test_scan_does_not_modify_library(steamapps: Path) -> None:
    write_manifest(steamapps, "10", "Counter-Strike", "Counter-Strike")
    before = sorted(p.name for p in steamapps.rglob("*"))
    scan_games(str(steamapps))
    assert sorted(p.name for p in steamapps.rglob("*")) == before
