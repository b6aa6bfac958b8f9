from __future__ import annotations

from pathlib import Path

import pytest
import vdf

from shortcutfixer.errors import MalformedManifest
from shortcutfixer.manifests import dump_manifest, load_manifest, parse_manifest_text

SAMPLE = (
    '"AppState"\n'
    '{\n'
    '\t"appid"\t\t"570"\n'
    '\t"name"\t\t"Dota 2"\n'
    '\t"installdir"\t\t"dota 2 beta"\n'
    '\t"UserConfig"\n'
    '\t{\n'
    '\t\t"language"\t\t"english"\n'
    '\t}\n'
    '}\n'
)


LIBRARY_FOLDERS = (
    '"libraryfolders"\n'
    '{\n'
    '\t"0"\n'
    '\t{\n'
    '\t\t"path"\t\t"C:\\\\Program Files (x86)\\\\Steam"\n'
    '\t\t"label"\t\t""\n'
    '\t\t"contentid"\t\t"4185234562712830151"\n'
    '\t\t"totalsize"\t\t"0"\n'
    '\t\t"apps"\n'
    '\t\t{\n'
    '\t\t\t"228980"\t\t"345602938"\n'
    '\t\t\t"570"\t\t"38291029384"\n'
    '\t\t}\n'
    '\t}\n'
    '\t"1"\n'
    '\t{\n'
    '\t\t"path"\t\t"D:\\\\SteamLibrary"\n'
    '\t\t"label"\t\t"Games \\"SSD\\""\n'
    '\t\t"apps"\n'
    '\t\t{\n'
    '\t\t}\n'
    '\t}\n'
    '}\n'
)

OLD_LIBRARY_FOLDERS = (
    '"LibraryFolders"\r\n'
    '{\r\n'
    '\t"TimeNextStatsReport"\t\t"1700000000"\r\n'
    '\t"ContentStatsID"\t\t"-4185234562712830151"\r\n'
    '\t"1"\t\t"D:\\\\SteamLibrary"\r\n'
    '\t"2"\t\t"E:\\\\Games\\\\Steam Library"\r\n'
    '}\r\n'
)

ESCAPED_MANIFEST = (
    '// written by Steam\n'
    '"AppState"\n'
    '{\n'
    '\t"appid"\t\t"220"\n'
    '\t"name"\t\t"Half-Life 2: \\"Episode\\" Edition"\n'
    '\t"LauncherPath"\t\t"C:\\\\Program Files (x86)\\\\Steam\\\\steam.exe"\n'
    '\t"installdir"\t\t"Half-Life 2"\n'
    '\t"InstalledDepots"\n'
    '\t{\n'
    '\t\t"221"\n'
    '\t\t{\n'
    '\t\t\t"manifest"\t\t"6508116539232437418"\n'
    '\t\t\t"size"\t\t"2715457385"\n'
    '\t\t}\n'
    '\t}\n'
    '}\n'
)


def test_parse_nested_blocks() -> None:
    tree = parse_manifest_text(SAMPLE)
    assert tree == {
        "AppState": {
            "appid": "570",
            "name": "Dota 2",
            "installdir": "dota 2 beta",
            "UserConfig": {"language": "english"},
        }
    }


@pytest.mark.parametrize("text", [SAMPLE, LIBRARY_FOLDERS, OLD_LIBRARY_FOLDERS, ESCAPED_MANIFEST],
                         ids=["appmanifest", "libraryfolders", "old-libraryfolders", "escaped"])
def test_parse_agrees_with_vdf_library(text: str) -> None:
    assert parse_manifest_text(text) == vdf.loads(text)


def test_windows_library_paths_are_unescaped() -> None:
    tree = parse_manifest_text(LIBRARY_FOLDERS)["libraryfolders"]
    assert tree["0"]["path"] == "C:\\Program Files (x86)\\Steam"
    assert tree["1"]["label"] == 'Games "SSD"'
    assert tree["1"]["apps"] == {}


def test_dump_then_parse_preserves_tree() -> None:
    tree = {
        "AppState": {
            "name": 'He said "hi" \\o/',
            "tabbed": "a\tb",
            "empty": "",
            "InstalledDepots": {"571": {"manifest": "123", "size": "0"}},
        }
    }
    assert parse_manifest_text(dump_manifest(tree)) == tree


def test_duplicate_keys_last_wins() -> None:
    tree = parse_manifest_text('"root" { "a" "1" "a" "2" }')
    assert tree == {"root": {"a": "2"}}


def test_crlf_and_bare_tokens() -> None:
    text = 'AppState\r\n{\r\n\tappid 10\r\n\tname "Half-Life"\r\n}\r\n'
    assert parse_manifest_text(text) == {"AppState": {"appid": "10", "name": "Half-Life"}}


def test_line_comments_are_ignored() -> None:
    text = '// generated\n"root"\n{\n\t"a"\t"1" // trailing\n\t"url"\t"http://example.com"\n}\n'
    assert parse_manifest_text(text) == {"root": {"a": "1", "url": "http://example.com"}}


def test_non_ascii_values() -> None:
    tree = parse_manifest_text('"AppState" { "name" "Ōkami HD" "installdir" "Ōkami" }')
    assert tree["AppState"]["name"] == "Ōkami HD"


def test_unterminated_string_reports_byte_offset() -> None:
    # "név" is 6 bytes, the space is byte 6, the unterminated quote is byte 7
    with pytest.raises(MalformedManifest) as exc:
        parse_manifest_text('"név" "broken', path="x.acf")
    assert exc.value.offset == 7
    assert exc.value.path == "x.acf"
    assert "unterminated string" in exc.value.reason


def test_unexpected_close_brace() -> None:
    with pytest.raises(MalformedManifest) as exc:
        parse_manifest_text('"a" "b"\n}')
    assert exc.value.offset == 8
    assert "unexpected '}'" in exc.value.reason


def test_unclosed_block_reports_open_brace() -> None:
    with pytest.raises(MalformedManifest) as exc:
        parse_manifest_text('"a"\n{\n"b" "c"\n')
    assert exc.value.offset == 4
    assert "never closed" in exc.value.reason


def test_key_without_value() -> None:
    with pytest.raises(MalformedManifest) as exc:
        parse_manifest_text('"a" {\n"b"\n}')
    assert exc.value.offset == 6
    assert "'b' has no value" in exc.value.reason


def test_block_without_key() -> None:
    with pytest.raises(MalformedManifest):
        parse_manifest_text('{ "a" "b" }')


def test_bom_counts_toward_offset() -> None:
    with pytest.raises(MalformedManifest) as exc:
        parse_manifest_text('\ufeff"a" "b')
    assert exc.value.offset == 7


def test_load_manifest_from_file(tmp_path: Path) -> None:
    path = tmp_path / "appmanifest_570.acf"
    path.write_text(SAMPLE, encoding="utf-8")
    assert load_manifest(str(path))["AppState"]["appid"] == "570"


def test_load_manifest_tolerates_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "appmanifest_1.acf"
    path.write_bytes(b'"AppState" { "name" "caf\xe9" }')
    assert load_manifest(str(path))["AppState"]["name"] == "caf\ufffd"


def test_load_manifest_error_names_file(tmp_path: Path) -> None:
    path = tmp_path / "appmanifest_2.acf"
    path.write_text('"AppState" {', encoding="utf-8")
    with pytest.raises(MalformedManifest) as exc:
        load_manifest(str(path))
    assert exc.value.path == str(path)


def test_load_manifest_missing_file(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        load_manifest(str(tmp_path / "nope.acf"))
