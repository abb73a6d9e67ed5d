"""
Compilation pipeline.

Fixed pipeline order:
  1. Create the main and test build directories
  2. Compile main sources
  3. Compile test sources
  4. Evaluate the accumulated diagnostics

Both units are always compiled, so a single run reports the diagnostics of
main and test sources together. Failure is only decided once both ran.
"""

from __future__ import annotations

import logging
import os
import sys
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from bldkit.classfile import MODULE_INFO_CLASS, add_module_main_class
from bldkit.exceptions import CompilationFailedError, DescriptorPatchError
from bldkit.javac import TOOL_NAME, parse_diagnostics
from bldkit.models import BuildProject, CompileUnit, Diagnostic, Severity
from bldkit.options import JavacOptions
from bldkit.tokenizer import DEFAULT_ENCODING, read_args_from_files
from bldkit.tools import find_tool

logger = logging.getLogger(__name__)

COMPILE_OPTION_D = "-d"
COMPILE_OPTION_CP = "-cp"
COMPILE_OPTION_CLASS_PATH = "--class-path"
COMPILE_OPTION_CLASSPATH = "--classpath"
COMPILE_OPTION_P = "-p"
COMPILE_OPTION_MODULE_PATH = "--module-path"

CLASSPATH_OPTIONS = (COMPILE_OPTION_CP, COMPILE_OPTION_CLASS_PATH, COMPILE_OPTION_CLASSPATH)
MODULE_PATH_OPTIONS = (COMPILE_OPTION_P, COMPILE_OPTION_MODULE_PATH)

SUCCESS_MESSAGE = "Compilation finished successfully."


class CompileState(str, Enum):
    IDLE = "idle"
    DIRECTORIES_ENSURED = "directories_ensured"
    MAIN_COMPILED = "main_compiled"
    TEST_COMPILED = "test_compiled"
    EVALUATED = "evaluated"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def remove_and_append_option_path(options: list[str], base_path: str, option: str) -> str:
    """
    Move the value of ``option`` from ``options`` onto ``base_path``.

    The flag only counts as present when it sits strictly before the last two
    positions of ``options``; otherwise ``options`` is left untouched.
    """
    try:
        index = options.index(option)
    except ValueError:
        return base_path
    if index + 1 < len(options) - 1:
        del options[index]
        return base_path + os.pathsep + options.pop(index)
    return base_path


def merge_path_option(options: list[str], entries: Sequence[str], flags: Sequence[str]) -> str:
    path = os.pathsep.join(entries)
    for flag in flags:
        path = remove_and_append_option_path(options, path, flag)
    return path


class CompileOperation:
    """
    Compiles main and test sources into their build directories.

    Setters return the operation; getters return copies, so changing a value
    obtained from the operation never changes the operation.
    """

    def __init__(self) -> None:
        self._main = CompileUnit(name="main")
        self._test = CompileUnit(name="test")
        self._options = JavacOptions()
        self._diagnostics: list[Diagnostic] = []
        self._module_main_class: Optional[str] = None
        self._tool_name = TOOL_NAME
        self._silent = False
        self.state = CompileState.IDLE

    # ── configuration ────────────────────────────────────────────────────────

    def with_main(self, unit: CompileUnit) -> "CompileOperation":
        self._main = unit
        return self

    def with_test(self, unit: CompileUnit) -> "CompileOperation":
        self._test = unit
        return self

    def with_compile_options(self, *options: str) -> "CompileOperation":
        self._options.extend(options)
        return self

    def with_compile_options_from_file(
        self, *files: Union[str, Path], encoding: str = DEFAULT_ENCODING
    ) -> "CompileOperation":
        self._options.extend(read_args_from_files(files, encoding=encoding))
        return self

    def with_release(self, version: Union[int, str]) -> "CompileOperation":
        self._options.release(version)
        return self

    def with_module_main_class(self, name: Optional[str]) -> "CompileOperation":
        self._module_main_class = name
        return self

    def with_tool(self, name: str) -> "CompileOperation":
        self._tool_name = name
        return self

    def with_silent(self, silent: bool = True) -> "CompileOperation":
        self._silent = silent
        return self

    def from_project(self, project: BuildProject) -> "CompileOperation":
        """Configure both compile units and the module main class from a project."""
        self._main = (
            self._main.with_destination(project.build_main_directory)
            .with_classpath(*project.compile_main_classpath)
            .with_module_path(*project.compile_main_module_path)
            .with_source_files(*project.main_source_files)
        )
        self._test = (
            self._test.with_destination(project.build_test_directory)
            .with_classpath(*project.compile_test_classpath)
            .with_module_path(*project.compile_test_module_path)
            .with_source_files(*project.test_source_files)
        )
        self._module_main_class = project.main_class
        if project.java_release is not None and not self._options.contains_release():
            self._options.release(project.java_release)
        return self

    @property
    def main(self) -> CompileUnit:
        return self._main

    @property
    def test(self) -> CompileUnit:
        return self._test

    @property
    def compile_options(self) -> JavacOptions:
        return self._options.copy()

    @property
    def module_main_class(self) -> Optional[str]:
        return self._module_main_class

    @property
    def silent(self) -> bool:
        return self._silent

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return list(self._diagnostics)

    # ── execution ────────────────────────────────────────────────────────────

    def execute(self) -> None:
        """
        Run the whole pipeline.

        Raises:
            CompilationFailedError: If any unit produced diagnostics.
            ToolNotFoundError: If the compiler is not available.
            DescriptorPatchError: If a module descriptor could not be rewritten.
        """
        self.execute_create_build_directories()
        self.execute_build_main_sources()
        self.execute_build_test_sources()

        self.state = CompileState.EVALUATED
        if self._diagnostics:
            self.state = CompileState.FAILED
            raise CompilationFailedError(self._diagnostics)

        self.state = CompileState.SUCCEEDED
        if not self._silent:
            print(SUCCESS_MESSAGE)

    def execute_create_build_directories(self) -> None:
        for unit in (self._main, self._test):
            if unit.destination is not None:
                unit.destination.mkdir(parents=True, exist_ok=True)
        self.state = CompileState.DIRECTORIES_ENSURED

    def execute_build_main_sources(self) -> None:
        self.execute_build_sources(self._main)
        self.state = CompileState.MAIN_COMPILED

    def execute_build_test_sources(self) -> None:
        self.execute_build_sources(self._test)
        self.state = CompileState.TEST_COMPILED

    def build_arguments(self, unit: CompileUnit, sources: Sequence[Path]) -> list[str]:
        """Assemble the compiler command line for one unit."""
        if unit.destination is None:
            raise ValueError(f"Compile unit '{unit.name}' has no destination")

        options = list(self._options) + list(unit.options)
        args = [COMPILE_OPTION_D, str(unit.destination.absolute())]

        if unit.classpath:
            args += [COMPILE_OPTION_CP, merge_path_option(options, unit.classpath, CLASSPATH_OPTIONS)]

        if unit.module_path:
            args += [COMPILE_OPTION_P, merge_path_option(options, unit.module_path, MODULE_PATH_OPTIONS)]

        args += options
        args += [str(source) for source in sources]
        return args

    def execute_build_sources(self, unit: CompileUnit) -> None:
        """Compile one unit, collecting its diagnostics when the compiler fails."""
        sources = unit.collect_sources()
        if not sources or unit.destination is None:
            logger.debug(f"Nothing to compile for {unit.name}")
            return

        args = self.build_arguments(unit, sources)
        tool = find_tool(self._tool_name)
        logger.info(f"Compiling {len(sources)} {unit.name} source file(s) to {unit.destination}")
        logger.debug(f"{tool.name} {' '.join(args)}")

        result = tool.run(args)
        if result.status != 0:
            diagnostics = parse_diagnostics(result.output)
            if not diagnostics:
                diagnostics = [
                    Diagnostic(Severity.ERROR, f"{tool.name} exited with status {result.status}")
                ]
            self._diagnostics.extend(diagnostics)
            self.execute_process_diagnostics(diagnostics)

        self._patch_module_descriptor(unit.destination)

    def _patch_module_descriptor(self, destination: Path) -> None:
        module_info = destination / MODULE_INFO_CLASS
        if self._module_main_class is None or not module_info.exists():
            return
        try:
            original = module_info.read_bytes()
            module_info.write_bytes(add_module_main_class(original, self._module_main_class))
        except OSError as e:
            raise DescriptorPatchError(f"Unable to rewrite {module_info}: {e}") from e
        logger.debug(f"Set main class of {module_info} to {self._module_main_class}")

    def execute_process_diagnostics(self, diagnostics: Sequence[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            sys.stderr.write(self.execute_format_diagnostic(diagnostic))

    def execute_format_diagnostic(self, diagnostic: Diagnostic) -> str:
        return f"{diagnostic}\n"
