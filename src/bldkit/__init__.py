"""
bldkit - build avoidance and compilation core for Java builds.

Usage:
    from bldkit import CompileOperation, CompileUnit

    main = CompileUnit("main").with_destination("build/main").with_source_directories("src/main/java")
    CompileOperation().with_main(main).with_release(17).execute()
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from bldkit.cache import FingerprintCache, load_record
from bldkit.classfile import add_module_main_class, read_module_main_class
from bldkit.compile import CompileOperation, CompileState
from bldkit.exceptions import (
    BldError,
    CacheWriteError,
    CompilationFailedError,
    DescriptorPatchError,
    ExitStatusError,
    ToolNotFoundError,
)
from bldkit.models import (
    Absent,
    CompileUnit,
    Dependency,
    Diagnostic,
    LedgerEntry,
    Loaded,
    Repository,
    Severity,
    VersionResolution,
)
from bldkit.options import JavacOptions
from bldkit.tokenizer import CommandLineTokenizer, read_args_from_files, tokenize
from bldkit.tools import ToolOperation, ToolResult, find_tool, register_tool, unregister_tool

try:
    __version__ = version("bldkit")
except PackageNotFoundError:
    __version__ = "0.0.0+local"


__all__ = [
    "__version__",
    "FingerprintCache",
    "load_record",
    "CompileOperation",
    "CompileState",
    "CompileUnit",
    "JavacOptions",
    "add_module_main_class",
    "read_module_main_class",
    "CommandLineTokenizer",
    "tokenize",
    "read_args_from_files",
    "ToolOperation",
    "ToolResult",
    "find_tool",
    "register_tool",
    "unregister_tool",
    "Repository",
    "Dependency",
    "VersionResolution",
    "LedgerEntry",
    "Loaded",
    "Absent",
    "Diagnostic",
    "Severity",
    "BldError",
    "CacheWriteError",
    "CompilationFailedError",
    "DescriptorPatchError",
    "ExitStatusError",
    "ToolNotFoundError",
]
