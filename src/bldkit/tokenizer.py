"""
Command line tokenizer for option files.

Option files hold tool arguments separated by whitespace:
- ``#`` at the start of a token comments out the rest of the line
- ``'`` and ``"`` quote arguments containing whitespace
- ``\\`` escapes the next character (``\\n``, ``\\r``, ``\\t``, ``\\f`` decode
  to their control characters, anything else to itself)
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, TextIO, Union

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "utf-8"

_ESCAPES: dict[str, str] = {
    "": "\\",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "f": "\f",
}

# str.isspace() minus the no-break spaces and NEL, which stay inside a token
_NON_BREAKING = "\x85\xa0\u2007\u202f"


def _is_whitespace(ch: str) -> bool:
    return ch.isspace() and ch not in _NON_BREAKING


class CommandLineTokenizer:
    """
    Lazily splits a character stream into decoded argument tokens.

    The tokenizer consumes the stream as it goes and cannot be restarted.
    """

    def __init__(self, reader: TextIO) -> None:
        self._reader = reader
        self._ch = reader.read(1)

    def __iter__(self) -> Iterator[str]:
        while True:
            token = self.next_token()
            if token is None:
                return
            yield token

    def next_token(self) -> Optional[str]:
        """Return the next token, or ``None`` once the stream is exhausted."""
        self._skip_whitespace_and_comments()
        if not self._ch:
            return None

        buf: list[str] = []
        quote = ""
        while self._ch:
            ch = self._ch
            if ch in ("'", '"'):
                if not quote:
                    quote = ch
                elif quote == ch:
                    quote = ""
                else:
                    buf.append(ch)
            elif ch == "\\":
                self._ch = self._reader.read(1)
                buf.append(_ESCAPES.get(self._ch, self._ch))
                if not self._ch:
                    break
            elif not quote and _is_whitespace(ch):
                break
            else:
                buf.append(ch)
            self._ch = self._reader.read(1)
        return "".join(buf)

    def _skip_whitespace_and_comments(self) -> None:
        while self._ch:
            if _is_whitespace(self._ch):
                self._ch = self._reader.read(1)
            elif self._ch == "#":
                # whole-line comment
                self._ch = self._reader.read(1)
                while self._ch and self._ch not in ("\n", "\r"):
                    self._ch = self._reader.read(1)
            else:
                break


def tokenize(text: str) -> list[str]:
    """Tokenize an in-memory string."""
    return list(CommandLineTokenizer(io.StringIO(text)))


def read_args_from_files(
    files: Iterable[Union[str, Path]], encoding: str = DEFAULT_ENCODING
) -> list[str]:
    """
    Read and tokenize every file in order.

    Args:
        files: Option files to read.
        encoding: Text encoding of the files.

    Returns:
        All tokens of all files, concatenated.

    Raises:
        OSError: If a file cannot be opened or read.
    """
    args: list[str] = []
    for file in files:
        path = Path(file)
        with open(path, "r", encoding=encoding, newline="") as reader:
            tokens = list(CommandLineTokenizer(reader))
        logger.debug(f"Read {len(tokens)} argument(s) from {path}")
        args.extend(tokens)
    return args
