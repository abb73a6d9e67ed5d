"""Command-line interface for bldkit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.table import Table

import bldkit
from bldkit.cache import (
    BLD_CACHE,
    PROPERTY_EXTENSIONS_LOCAL,
    load_record,
)
from bldkit.compile import CompileOperation
from bldkit.exceptions import EXIT_FATAL, EXIT_SUCCESS, BldError, CompilationFailedError
from bldkit.models import CompileUnit, Diagnostic, LedgerEntry, Loaded, Severity
from bldkit.tokenizer import read_args_from_files

_SEVERITY_STYLES: dict[Severity, str] = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.MANDATORY_WARNING: "yellow",
    Severity.NOTE: "cyan",
    Severity.OTHER: "white",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bldkit",
        description="Compile Java sources and inspect the build avoidance cache.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {bldkit.__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_ = subparsers.add_parser("compile", help="Compile main and test sources.")
    compile_.add_argument("--main-src", action="append", default=[], help="Main source directory (repeatable)")
    compile_.add_argument("--test-src", action="append", default=[], help="Test source directory (repeatable)")
    compile_.add_argument("--main-dest", default=None, help="Main build directory")
    compile_.add_argument("--test-dest", default=None, help="Test build directory")
    compile_.add_argument("--cp", action="append", default=[], help="Main classpath entry (repeatable)")
    compile_.add_argument("--test-cp", action="append", default=[], help="Test classpath entry (repeatable)")
    compile_.add_argument(
        "--module-path", action="append", default=[], help="Main module path entry (repeatable)"
    )
    compile_.add_argument(
        "--test-module-path", action="append", default=[], help="Test module path entry (repeatable)"
    )
    compile_.add_argument("--release", default=None, help="Java release to compile for")
    compile_.add_argument(
        "--options-file", action="append", default=[], help="File with compiler options (repeatable)"
    )
    compile_.add_argument("--module-main-class", default=None, help="Main class recorded in module-info")
    compile_.add_argument("--javac", default="javac", help="Name of the compiler tool")
    compile_.add_argument("--silent", action="store_true", help="Do not print the success message")

    tokenize_ = subparsers.add_parser("tokenize", help="Print the arguments read from option files.")
    tokenize_.add_argument("files", nargs="+", help="Option files")
    tokenize_.add_argument("--encoding", default="utf-8", help="Text encoding of the files")
    tokenize_.add_argument("--json", action="store_true", help="Print tokens as a JSON list")

    status = subparsers.add_parser("cache-status", help="Show the stored build cache record.")
    status.add_argument("lib_dir", help="Directory holding bld.cache")
    return parser


def _compile_operation(args: argparse.Namespace) -> CompileOperation:
    main = (
        CompileUnit("main")
        .with_destination(args.main_dest)
        .with_source_directories(*args.main_src)
        .with_classpath(*args.cp)
        .with_module_path(*args.module_path)
    )
    test = (
        CompileUnit("test")
        .with_destination(args.test_dest)
        .with_source_directories(*args.test_src)
        .with_classpath(*args.test_cp)
        .with_module_path(*args.test_module_path)
    )
    operation = (
        CompileOperation()
        .with_main(main)
        .with_test(test)
        .with_tool(args.javac)
        .with_module_main_class(args.module_main_class)
        .with_silent(args.silent)
    )
    if args.options_file:
        operation.with_compile_options_from_file(*args.options_file)
    if args.release and not operation.compile_options.contains_release():
        operation.with_release(args.release)
    return operation


def _print_diagnostics_summary(diagnostics: Sequence[Diagnostic]) -> None:
    console = Console(stderr=True)
    table = Table(title="Compilation Diagnostics", show_header=True, header_style="bold magenta")
    table.add_column("Severity")
    table.add_column("Location", style="cyan")
    table.add_column("Message")

    for diagnostic in diagnostics:
        location = ""
        if diagnostic.source is not None:
            location = diagnostic.source
            if diagnostic.line is not None:
                location += f":{diagnostic.line}"
        table.add_row(
            f"[{_SEVERITY_STYLES[diagnostic.severity]}]{diagnostic.severity.name}[/]",
            location,
            diagnostic.message.splitlines()[0] if diagnostic.message else "",
        )
    console.print(table)


def _run_compile(args: argparse.Namespace) -> int:
    try:
        operation = _compile_operation(args)
        operation.execute()
    except CompilationFailedError as exc:
        _print_diagnostics_summary(exc.diagnostics)
        return exc.status
    except (OSError, BldError) as exc:
        print(f"bldkit: {exc}", file=sys.stderr)
        return EXIT_FATAL
    return EXIT_SUCCESS


def _run_tokenize(args: argparse.Namespace) -> int:
    try:
        tokens = read_args_from_files(args.files, encoding=args.encoding)
    except (OSError, ValueError) as exc:
        print(f"bldkit: {exc}", file=sys.stderr)
        return EXIT_FATAL

    if args.json:
        print(json.dumps(tokens))
    else:
        for token in tokens:
            print(token)
    return EXIT_SUCCESS


def _run_cache_status(args: argparse.Namespace) -> int:
    cache_file = Path(args.lib_dir) / BLD_CACHE
    result = load_record(cache_file)
    console = Console()

    if not isinstance(result, Loaded):
        console.print(f"[yellow]No usable build cache:[/] {result.reason}")
        return EXIT_SUCCESS

    table = Table(title=str(cache_file), show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in result.record.items():
        if key == PROPERTY_EXTENSIONS_LOCAL:
            continue
        table.add_row(key, value)
    console.print(table)

    ledger_lines = result.record.get(PROPERTY_EXTENSIONS_LOCAL, "").split("\n")
    ledger = [entry for entry in map(LedgerEntry.parse, ledger_lines) if entry is not None]
    if ledger:
        ledger_table = Table(title="Local artifacts", show_header=True, header_style="bold magenta")
        ledger_table.add_column("Path", style="cyan")
        ledger_table.add_column("Recorded", justify="right")
        ledger_table.add_column("Current", justify="right")
        for entry in ledger:
            path = Path(entry.path)
            current = str(LedgerEntry.for_file(path).timestamp) if path.is_file() else "missing"
            style = "green" if current == str(entry.timestamp) else "red"
            ledger_table.add_row(entry.path, str(entry.timestamp), f"[{style}]{current}[/]")
        console.print(ledger_table)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "compile":
        return _run_compile(args)
    if args.command == "tokenize":
        return _run_tokenize(args)
    if args.command == "cache-status":
        return _run_cache_status(args)
    return EXIT_FATAL


if __name__ == "__main__":
    raise SystemExit(main())
