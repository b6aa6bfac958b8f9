"""
Parser for Steam's nested key/value text format (.acf / .vdf).

    "AppState"
    {
        "appid"       "570"
        "name"        "Dota 2"
        "installdir"  "dota 2 beta"
    }

Produces plain dicts of str -> (str | dict). Duplicate keys: the last one wins.
Line comments (// ...) outside quoted strings are ignored.
Errors carry the file path and the byte offset of the offending token so a
scan can report the broken file and move on.

Serialization is delegated to the ValvePython vdf library, which writes the
same grammar; parse_manifest_text(dump_manifest(tree)) == tree.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import vdf

from ..errors import MalformedManifest

logger = logging.getLogger(__name__)

_STRING = "string"
_OPEN = "{"
_CLOSE = "}"

# Escapes understood in quoted strings (superset of what vdf.dumps emits)
_UNESCAPE = {
    'n': '\n',
    't': '\t',
    'v': '\v',
    'b': '\b',
    'r': '\r',
    'f': '\f',
    'a': '\a',
    '\\': '\\',
    '?': '?',
    '"': '"',
    "'": "'",
}

_BARE_TERMINATORS = frozenset('{}"')


class _Tokenizer:
    def __init__(self, text: str, path: Optional[str], base_offset: int = 0):
        self.text = text
        self.path = path
        self.base_offset = base_offset
        self.pos = 0

    def byte_offset(self, pos: int) -> int:
        return self.base_offset + len(self.text[:pos].encode('utf-8'))

    def error(self, pos: int, reason: str) -> MalformedManifest:
        return MalformedManifest(self.path, self.byte_offset(pos), reason)

    def next(self) -> Optional[Tuple[str, str, int]]:
        text = self.text
        length = len(text)
        pos = self.pos
        while pos < length:
            if text[pos].isspace():
                pos += 1
            elif text.startswith('//', pos):
                newline = text.find('\n', pos)
                pos = length if newline == -1 else newline + 1
            else:
                break
        if pos >= length:
            self.pos = pos
            return None

        ch = text[pos]
        if ch == _OPEN or ch == _CLOSE:
            self.pos = pos + 1
            return ch, ch, pos
        if ch == '"':
            return self._quoted(pos)
        return self._bare(pos)

    def _quoted(self, start: int) -> Tuple[str, str, int]:
        text = self.text
        length = len(text)
        pos = start + 1
        chunks = []
        while pos < length:
            ch = text[pos]
            if ch == '"':
                self.pos = pos + 1
                return _STRING, ''.join(chunks), start
            if ch == '\\' and pos + 1 < length:
                nxt = text[pos + 1]
                chunks.append(_UNESCAPE.get(nxt, '\\' + nxt))
                pos += 2
                continue
            chunks.append(ch)
            pos += 1
        raise self.error(start, "unterminated string")

    def _bare(self, start: int) -> Tuple[str, str, int]:
        text = self.text
        length = len(text)
        pos = start
        while pos < length and not text[pos].isspace() and text[pos] not in _BARE_TERMINATORS:
            pos += 1
        self.pos = pos
        return _STRING, text[start:pos], start


def parse_manifest_text(text: str, path: Optional[str] = None) -> Dict[str, Any]:
    """
    Parse manifest text into a tree of dicts.

    Raises:
        MalformedManifest: unbalanced braces, unterminated strings, or a key
            without a value.
    """
    base_offset = 0
    if text.startswith('\ufeff'):
        text = text[1:]
        base_offset = 3

    tokens = _Tokenizer(text, path, base_offset)
    root: Dict[str, Any] = {}
    # (mapping, position of the '{' that opened it)
    stack = [(root, -1)]
    key: Optional[str] = None
    key_pos = 0

    while True:
        token = tokens.next()
        if token is None:
            break
        kind, value, pos = token
        current = stack[-1][0]

        if kind == _STRING:
            if key is None:
                key, key_pos = value, pos
            else:
                current[key] = value
                key = None
        elif kind == _OPEN:
            if key is None:
                raise tokens.error(pos, "block has no key")
            child: Dict[str, Any] = {}
            current[key] = child
            stack.append((child, pos))
            key = None
        else:
            if key is not None:
                raise tokens.error(key_pos, f"key '{key}' has no value")
            if len(stack) == 1:
                raise tokens.error(pos, "unbalanced braces: unexpected '}'")
            stack.pop()

    if key is not None:
        raise tokens.error(key_pos, f"key '{key}' has no value")
    if len(stack) > 1:
        raise tokens.error(stack[-1][1], "unbalanced braces: '{' is never closed")

    return root


def load_manifest(path: str) -> Dict[str, Any]:
    """
    Read and parse a manifest file.

    Raises:
        OSError: the file cannot be read.
        MalformedManifest: the content is not valid.
    """
    with open(path, 'rb') as f:
        raw = f.read()
    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError:
        # Older clients wrote some names in the system codepage
        logger.debug(f"[Manifest] {path} is not valid UTF-8, decoding with replacement")
        text = raw.decode('utf-8', errors='replace')
    return parse_manifest_text(text, path)


def dump_manifest(tree: Dict[str, Any]) -> str:
    """Serialize a tree back to manifest text."""
    return vdf.dumps(tree, pretty=True)
