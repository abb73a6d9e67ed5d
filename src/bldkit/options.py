"""javac option list with fluent helpers."""

from __future__ import annotations

from typing import Iterable, Union

RELEASE = "--release"


class JavacOptions(list):
    """A plain list of option tokens; helpers append and return the list."""

    def __init__(self, options: Iterable[str] = ()) -> None:
        super().__init__(options)

    def copy(self) -> "JavacOptions":
        return JavacOptions(self)

    def release(self, version: Union[int, str]) -> "JavacOptions":
        """Compile for a specific Java SE release."""
        self.extend([RELEASE, str(version)])
        return self

    def contains_release(self) -> bool:
        return RELEASE in self or any(o.startswith(RELEASE + "=") for o in self)

    def enable_preview(self) -> "JavacOptions":
        self.append("--enable-preview")
        return self

    def encoding(self, name: str) -> "JavacOptions":
        self.extend(["-encoding", name])
        return self

    def deprecation(self) -> "JavacOptions":
        self.append("-deprecation")
        return self

    def warning_error(self) -> "JavacOptions":
        self.append("-Werror")
        return self

    def parameters(self) -> "JavacOptions":
        self.append("-parameters")
        return self

    def no_warn(self) -> "JavacOptions":
        self.append("-nowarn")
        return self

    def debugging_info_all(self) -> "JavacOptions":
        self.append("-g")
        return self
