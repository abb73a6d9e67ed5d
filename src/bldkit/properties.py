"""
Java properties codec.

Reads and writes the ``key=value`` line format used for ``bld.cache`` so the
file stays interchangeable with other bld tooling. The file is ISO-8859-1;
characters outside printable ASCII are written as ``\\uXXXX`` escapes.
"""

from __future__ import annotations

import re
from typing import Mapping, Optional

ENCODING = "iso-8859-1"

_WHITESPACE = " \t\f"
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_SEPARATORS = "=:"

_LOAD_ESCAPES: dict[str, str] = {
    "t": "\t",
    "n": "\n",
    "r": "\r",
    "f": "\f",
}

_STORE_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    "\t": "\\t",
    "\n": "\\n",
    "\r": "\\r",
    "\f": "\\f",
    "=": "\\=",
    ":": "\\:",
    "#": "\\#",
    "!": "\\!",
}


def _logical_lines(text: str) -> list[str]:
    """Join continuation lines and drop comments and blank lines."""
    lines: list[str] = []
    pending: Optional[str] = None
    for raw in _LINE_BREAK.split(text):
        line = raw.lstrip(_WHITESPACE)
        if pending is None:
            if not line or line[0] in "#!":
                continue
        trailing = len(line) - len(line.rstrip("\\"))
        continued = trailing % 2 == 1
        if continued:
            line = line[:-1]
        pending = line if pending is None else pending + line
        if not continued:
            lines.append(pending)
            pending = None
    if pending is not None:
        lines.append(pending)
    return lines


def _unescape(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        i += 1
        if i >= len(text):
            break
        ch = text[i]
        if ch == "u":
            digits = text[i + 1 : i + 5]
            if len(digits) != 4:
                raise ValueError(f"Malformed \\uxxxx encoding: {text!r}")
            out.append(chr(int(digits, 16)))
            i += 5
            continue
        out.append(_LOAD_ESCAPES.get(ch, ch))
        i += 1
    # recombine surrogate pairs written as two \u escapes
    return "".join(out).encode("utf-16-le", "surrogatepass").decode("utf-16-le")


def _split_key_value(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in _SEPARATORS or ch in _WHITESPACE:
            break
        i += 1
    key = line[:i]
    rest = line[i:].lstrip(_WHITESPACE)
    if rest and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def loads(text: str) -> dict[str, str]:
    """
    Parse properties text.

    Raises:
        ValueError: On malformed ``\\u`` escapes.
    """
    properties: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_key_value(line)
        properties[_unescape(key)] = _unescape(value)
    return properties


def _escape(text: str, is_key: bool) -> str:
    out: list[str] = []
    for index, ch in enumerate(text):
        if ch == " ":
            out.append("\\ " if is_key or index == 0 else " ")
        elif ch in _STORE_ESCAPES:
            out.append(_STORE_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) > 0x7E:
            out.append(f"\\u{ord(ch):04X}" if ord(ch) <= 0xFFFF else _escape_astral(ch))
        else:
            out.append(ch)
    return "".join(out)


def _escape_astral(ch: str) -> str:
    units = ch.encode("utf-16-be")
    high = int.from_bytes(units[:2], "big")
    low = int.from_bytes(units[2:], "big")
    return f"\\u{high:04X}\\u{low:04X}"


def dumps(properties: Mapping[str, str], comment: Optional[str] = None) -> str:
    """Serialize properties, one ``key=value`` line per entry in mapping order."""
    lines: list[str] = []
    if comment:
        lines.extend(f"#{line}" for line in comment.splitlines())
    for key, value in properties.items():
        lines.append(f"{_escape(key, True)}={_escape(value, False)}")
    return "\n".join(lines) + "\n"
