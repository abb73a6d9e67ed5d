"""
Unit tests — cli.py

Covers:
- tokenize prints one token per line, or a JSON list with --json
- tokenize exit code 2 on a missing file
- cache-status on missing and populated caches
- compile exit codes 0 / 1 / 2
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from bldkit.cache import FingerprintCache
from bldkit.cli import main
from bldkit.models import Repository
from bldkit.tools import ToolResult, register_tool, unregister_tool


class ScriptedCompiler:
    name = "cli-javac"

    def __init__(self, result: ToolResult) -> None:
        self.result = result
        self.calls: list[list[str]] = []

    def run(self, args):
        self.calls.append(list(args))
        return self.result


@pytest.fixture
def java_tree(tmp_path) -> Path:
    source_dir = tmp_path / "src" / "main" / "java"
    source_dir.mkdir(parents=True)
    (source_dir / "Main.java").write_text("class Main {}\n", encoding="utf-8")
    return tmp_path


def compile_argv(root: Path, *extra: str) -> list[str]:
    return [
        "compile",
        "--main-src", str(root / "src" / "main" / "java"),
        "--main-dest", str(root / "build" / "main"),
        "--javac", "cli-javac",
        *extra,
    ]


# ── tokenize ──────────────────────────────────────────────────────────────────


class TestTokenizeCommand:

    def test_prints_tokens(self, tmp_path, capsys):
        options = tmp_path / "javac.options"
        options.write_text("-g 'a b' # comment\n", encoding="utf-8")
        assert main(["tokenize", str(options)]) == 0
        assert capsys.readouterr().out.splitlines() == ["-g", "a b"]

    def test_json_output(self, tmp_path, capsys):
        first = tmp_path / "one.options"
        second = tmp_path / "two.options"
        first.write_text("--release 17\n", encoding="utf-8")
        second.write_text('"-Xlint:all"\n', encoding="utf-8")
        assert main(["tokenize", "--json", str(first), str(second)]) == 0
        assert json.loads(capsys.readouterr().out) == ["--release", "17", "-Xlint:all"]

    def test_missing_file(self, tmp_path, capsys):
        assert main(["tokenize", str(tmp_path / "missing.options")]) == 2
        assert "bldkit:" in capsys.readouterr().err


# ── cache-status ──────────────────────────────────────────────────────────────


class TestCacheStatusCommand:

    def test_no_cache(self, tmp_path, capsys):
        assert main(["cache-status", str(tmp_path)]) == 0
        assert "No usable build cache" in capsys.readouterr().out

    def test_populated_cache(self, tmp_path, capsys):
        artifact = tmp_path / "local.jar"
        artifact.write_bytes(b"jar")
        cache = FingerprintCache(tmp_path)
        cache.fingerprint_extensions([Repository("https://repo1.maven.org/maven2/")], ["com.uwyn.rife2:bld:2.0"], False, False)
        cache.write_cache([artifact])

        assert main(["cache-status", str(tmp_path)]) == 0
        out = capsys.readouterr().out
        assert "bld.extensions.hash" in out
        assert cache.extensions_hash in out
        assert "Local artifacts" in out


# ── compile ───────────────────────────────────────────────────────────────────


class TestCompileCommand:

    def test_success(self, java_tree, capsys):
        compiler = ScriptedCompiler(ToolResult(0))
        register_tool(compiler)
        try:
            assert main(compile_argv(java_tree, "--release", "17")) == 0
        finally:
            unregister_tool(compiler.name)

        assert "Compilation finished successfully." in capsys.readouterr().out
        (args,) = compiler.calls
        assert args[args.index("--release") + 1] == "17"

    def test_silent(self, java_tree, capsys):
        compiler = ScriptedCompiler(ToolResult(0))
        register_tool(compiler)
        try:
            assert main(compile_argv(java_tree, "--silent")) == 0
        finally:
            unregister_tool(compiler.name)
        assert capsys.readouterr().out == ""

    def test_release_from_options_file_wins(self, java_tree):
        options = java_tree / "javac.options"
        options.write_text("--release 11 -g\n", encoding="utf-8")
        compiler = ScriptedCompiler(ToolResult(0))
        register_tool(compiler)
        try:
            main(compile_argv(java_tree, "--options-file", str(options), "--release", "17", "--silent"))
        finally:
            unregister_tool(compiler.name)
        (args,) = compiler.calls
        assert args.count("--release") == 1
        assert args[args.index("--release") + 1] == "11"

    def test_compilation_failure(self, java_tree, capsys):
        compiler = ScriptedCompiler(ToolResult(1, stderr="Main.java:1: error: ';' expected\n1 error\n"))
        register_tool(compiler)
        try:
            assert main(compile_argv(java_tree)) == 1
        finally:
            unregister_tool(compiler.name)

        err = capsys.readouterr().err
        assert "Main.java:1: error: ';' expected" in err
        assert "Compilation Diagnostics" in err

    def test_missing_compiler(self, java_tree, monkeypatch, capsys):
        monkeypatch.setenv("PATH", "")
        monkeypatch.delenv("JAVA_HOME", raising=False)
        assert main(compile_argv(java_tree)) == 2
        assert "No cli-javac tool found." in capsys.readouterr().err
