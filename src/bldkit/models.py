"""Data models shared across bldkit."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

PathLike = Union[str, Path]


@dataclass(frozen=True)
class Repository:
    location: str
    username: Optional[str] = None
    password: Optional[str] = None

    def __str__(self) -> str:
        # credentials change which artifacts are visible, the secret itself stays out
        if self.username:
            return f"{self.location}:{self.username}"
        return self.location


@dataclass(frozen=True)
class Dependency:
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    classifier: str = ""
    type: str = "jar"

    def __str__(self) -> str:
        result = f"{self.group_id}:{self.artifact_id}"
        if self.version:
            result += f":{self.version}"
        if self.classifier:
            result += f":{self.classifier}"
        if self.type and self.type != "jar":
            result += f"@{self.type}"
        return result


# scope name -> dependencies, iterated in insertion order
DependencyScopes = dict[str, Optional[Sequence[Dependency]]]


@dataclass
class VersionResolution:
    """Version overrides produced by the dependency resolver."""

    overrides: dict[str, str] = field(default_factory=dict)

    def override_version(self, name: str, version: str) -> "VersionResolution":
        self.overrides[name] = version
        return self

    def fingerprint_lines(self) -> list[str]:
        return [f"{key}:{value}" for key, value in self.overrides.items()]


@dataclass(frozen=True)
class LedgerEntry:
    """Last-modified timestamp (milliseconds) of a local artifact at cache-write time."""

    timestamp: int
    path: str

    def __str__(self) -> str:
        return f"{self.timestamp}:{self.path}"

    @classmethod
    def parse(cls, line: str) -> Optional["LedgerEntry"]:
        parts = line.split(":", 1)
        if len(parts) != 2:
            return None
        try:
            return cls(int(parts[0]), parts[1])
        except ValueError:
            return None

    @classmethod
    def for_file(cls, path: PathLike) -> "LedgerEntry":
        resolved = Path(path).absolute()
        return cls(resolved.stat().st_mtime_ns // 1_000_000, str(resolved))


CacheRecord = dict[str, str]


@dataclass(frozen=True)
class Loaded:
    record: CacheRecord


@dataclass(frozen=True)
class Absent:
    reason: str


CacheLoad = Union[Loaded, Absent]


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    MANDATORY_WARNING = "mandatory_warning"
    NOTE = "note"
    OTHER = "other"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    source: Optional[str] = None
    line: Optional[int] = None

    def __str__(self) -> str:
        kind = "warning" if self.severity == Severity.MANDATORY_WARNING else self.severity.value
        prefix = "" if self.severity == Severity.OTHER else f"{kind}: "
        if self.source is not None and self.line is not None:
            return f"{self.source}:{self.line}: {prefix}{self.message}"
        if self.source is not None:
            return f"{self.source}: {prefix}{self.message}"
        return f"{prefix}{self.message}"


def _java_sources(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob("*.java") if p.is_file())


@dataclass(frozen=True)
class CompileUnit:
    """
    One group of sources compiled to one destination.

    Instances are immutable; every ``with_*`` method returns an updated copy
    and appends to the existing collections rather than replacing them.
    """

    name: str = "main"
    destination: Optional[Path] = None
    source_files: tuple[Path, ...] = ()
    source_directories: tuple[Path, ...] = ()
    classpath: tuple[str, ...] = ()
    module_path: tuple[str, ...] = ()
    options: tuple[str, ...] = ()

    def with_destination(self, directory: Optional[PathLike]) -> "CompileUnit":
        return dataclasses.replace(
            self, destination=Path(directory) if directory is not None else None
        )

    def with_source_files(self, *files: PathLike) -> "CompileUnit":
        return dataclasses.replace(
            self, source_files=self.source_files + tuple(Path(f) for f in files)
        )

    def with_source_directories(self, *directories: PathLike) -> "CompileUnit":
        return dataclasses.replace(
            self,
            source_directories=self.source_directories + tuple(Path(d) for d in directories),
        )

    def with_classpath(self, *entries: PathLike) -> "CompileUnit":
        return dataclasses.replace(self, classpath=self.classpath + tuple(str(e) for e in entries))

    def with_module_path(self, *entries: PathLike) -> "CompileUnit":
        return dataclasses.replace(
            self, module_path=self.module_path + tuple(str(e) for e in entries)
        )

    def with_options(self, *options: str) -> "CompileUnit":
        return dataclasses.replace(self, options=self.options + tuple(options))

    def collect_sources(self) -> list[Path]:
        """Explicit source files followed by every ``.java`` file under the source directories."""
        sources = list(self.source_files)
        for directory in self.source_directories:
            sources.extend(_java_sources(directory))
        return sources


class BuildProject(Protocol):
    """Project attributes consumed by ``CompileOperation.from_project``."""

    build_main_directory: Optional[PathLike]
    build_test_directory: Optional[PathLike]
    compile_main_classpath: Sequence[str]
    compile_test_classpath: Sequence[str]
    compile_main_module_path: Sequence[str]
    compile_test_module_path: Sequence[str]
    main_source_files: Sequence[PathLike]
    test_source_files: Sequence[PathLike]
    main_class: Optional[str]
    java_release: Optional[int]
