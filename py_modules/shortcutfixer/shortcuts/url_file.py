"""
Reading and editing Windows Internet Shortcut (.url) files.

Steam writes game shortcuts as:

    [{000214A0-0000-0000-C000-000000000046}]
    Prop3=19,0
    [InternetShortcut]
    IDList=
    IconIndex=0
    URL=steam://rungameid/570
    IconFile=C:\\Program Files (x86)\\Steam\\steam\\games\\0bbb630d63262dd66d2fdd0f7d37e8661a410075.ico

Edits touch only the IconFile line; every other byte is preserved.
"""
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from typing import Optional

STEAM_RUN_PATTERN = re.compile(r'^[ \t]*URL[ \t]*=[ \t]*steam://rungameid/([^\s]*)', re.IGNORECASE | re.MULTILINE)
ICON_FILE_PATTERN = re.compile(r'^([ \t]*IconFile[ \t]*=)([^\r\n]*)', re.IGNORECASE | re.MULTILINE)
SECTION_PATTERN = re.compile(r'^[ \t]*\[InternetShortcut\][^\r\n]*(\r?\n|$)', re.IGNORECASE | re.MULTILINE)


@dataclass
class UrlShortcut:
    path: str
    text: str
    encoding: str

    @property
    def name(self) -> str:
        return os.path.splitext(os.path.basename(self.path))[0]

    @property
    def newline(self) -> str:
        return '\r\n' if '\r\n' in self.text else '\n'


def read_url_shortcut(path: str) -> UrlShortcut:
    """
    Raises:
        OSError: the file cannot be read.
    """
    with open(path, 'rb') as f:
        raw = f.read()
    if raw.startswith(b'\xef\xbb\xbf'):
        return UrlShortcut(path, raw.decode('utf-8-sig', errors='replace'), 'utf-8-sig')
    for encoding in ('utf-8', 'cp1252'):
        try:
            return UrlShortcut(path, raw.decode(encoding), encoding)
        except UnicodeDecodeError:
            continue
    return UrlShortcut(path, raw.decode('latin-1'), 'latin-1')


def extract_game_id(text: str) -> Optional[str]:
    """The id after steam://rungameid/, or None for non-Steam shortcuts."""
    match = STEAM_RUN_PATTERN.search(text)
    return match.group(1).strip() if match else None


def get_icon_file(text: str) -> Optional[str]:
    match = ICON_FILE_PATTERN.search(text)
    return match.group(2).strip() if match else None


def icon_file_name(icon_file: Optional[str]) -> Optional[str]:
    """Last path component of an IconFile value, for either separator style."""
    if not icon_file:
        return None
    name = re.split(r'[\\/]', icon_file.strip().strip('"'))[-1]
    return name or None


def set_icon_file(text: str, icon_path: str) -> str:
    """Return text with the IconFile value replaced (or added to [InternetShortcut])."""
    if ICON_FILE_PATTERN.search(text):
        return ICON_FILE_PATTERN.sub(lambda m: m.group(1) + icon_path, text, count=1)

    newline = '\r\n' if '\r\n' in text else '\n'
    line = f"IconFile={icon_path}"
    section = SECTION_PATTERN.search(text)
    if section:
        end = section.end()
        if not section.group(1):
            return text[:end] + newline + line
        return text[:end] + line + newline + text[end:]

    if text and not text.endswith(('\n', '\r')):
        text += newline
    return f"{text}[InternetShortcut]{newline}{line}{newline}"


def write_url_shortcut(shortcut: UrlShortcut, text: str) -> None:
    """
    Replace the shortcut's content atomically, keeping its encoding and mode.

    Raises:
        OSError: including PermissionError when the location is read-only.
        UnicodeEncodeError: text cannot be represented in the shortcut's encoding;
            the file is left untouched.
    """
    encoding = shortcut.encoding
    data = text.encode(encoding)
    directory = os.path.dirname(os.path.abspath(shortcut.path))
    fd, tmp_path = tempfile.mkstemp(prefix='.sfx-', suffix='.url.tmp', dir=directory)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        shutil.copymode(shortcut.path, tmp_path)
        os.replace(tmp_path, shortcut.path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    shortcut.text = text
