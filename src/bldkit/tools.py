"""
Name-addressed tool providers.

Tools are looked up by name: providers registered in-process win, otherwise
the executable is located on ``PATH`` or under ``$JAVA_HOME/bin`` and run as
a subprocess. Invocations block until the tool exits; there is no timeout.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence, Union

from bldkit.exceptions import EXIT_FAILURE, ExitStatusError, ToolNotFoundError
from bldkit.tokenizer import DEFAULT_ENCODING, read_args_from_files

logger = logging.getLogger(__name__)

# tool output is decoded with a fixed encoding; undecodable bytes become U+FFFD
OUTPUT_ENCODING = "utf-8"


@dataclass(frozen=True)
class ToolResult:
    status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class ToolProvider(Protocol):
    name: str

    def run(self, args: Sequence[str]) -> ToolResult: ...


class SubprocessTool:
    """Runs an executable found on disk."""

    def __init__(self, name: str, executable: str) -> None:
        self.name = name
        self.executable = executable

    def run(self, args: Sequence[str]) -> ToolResult:
        result = subprocess.run(
            [self.executable, *args],
            capture_output=True,
            encoding=OUTPUT_ENCODING,
            errors="replace",
        )
        return ToolResult(result.returncode, result.stdout, result.stderr)

    def __repr__(self) -> str:
        return f"SubprocessTool({self.name!r}, {self.executable!r})"


_registry: dict[str, ToolProvider] = {}


def register_tool(provider: ToolProvider) -> None:
    """Register an in-process provider, replacing any provider of the same name."""
    _registry[provider.name] = provider


def unregister_tool(name: str) -> None:
    _registry.pop(name, None)


def _locate_executable(name: str) -> Optional[str]:
    found = shutil.which(name)
    if found:
        return found
    java_home = os.environ.get("JAVA_HOME")
    if java_home:
        return shutil.which(name, path=str(Path(java_home) / "bin"))
    return None


def find_tool(name: str) -> ToolProvider:
    """
    Look up a tool by name.

    Raises:
        ToolNotFoundError: If no provider or executable exists for ``name``.
    """
    if name in _registry:
        return _registry[name]
    executable = _locate_executable(name)
    if executable is None:
        raise ToolNotFoundError(f"No {name} tool found.")
    return SubprocessTool(name, executable)


class ToolOperation:
    """
    Runs a named tool with accumulated command line arguments.

    On success the arguments are cleared so the operation can be reused.
    """

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        self._tool_args: list[str] = []
        self.silent = False

    @property
    def tool_args(self) -> list[str]:
        return list(self._tool_args)

    def with_tool_args(self, *args: str) -> "ToolOperation":
        self._tool_args.extend(args)
        return self

    def with_tool_args_from_mapping(self, args: Mapping[str, Optional[str]]) -> "ToolOperation":
        """Add ``flag value`` pairs; flags with an empty value are added alone."""
        for flag, value in args.items():
            self._tool_args.append(flag)
            if value:
                self._tool_args.append(value)
        return self

    def with_tool_args_from_file(
        self, *files: Union[str, Path], encoding: str = DEFAULT_ENCODING
    ) -> "ToolOperation":
        """
        Add arguments parsed from option files.

        Raises:
            OSError: If a file cannot be read; no arguments are added.
        """
        self._tool_args.extend(read_args_from_files(files, encoding=encoding))
        return self

    def execute(self) -> ToolResult:
        if not self._tool_args:
            print(f"No {self.tool_name} command line arguments specified.", file=sys.stderr)
            raise ExitStatusError(EXIT_FAILURE)

        tool = find_tool(self.tool_name)
        logger.debug(f"Running {tool.name} {' '.join(self._tool_args)}")
        result = tool.run(list(self._tool_args))
        if not self.silent:
            sys.stdout.write(result.stdout)
        sys.stderr.write(result.stderr)

        if result.status != 0:
            print(f"{tool.name} {' '.join(self._tool_args)}")
            raise ExitStatusError(result.status)

        self._tool_args.clear()
        return result
