"""Custom exceptions for bldkit."""

from __future__ import annotations

from typing import Sequence

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_FATAL = 2


class BldError(Exception):
    """Base class for all bldkit errors."""


class ToolNotFoundError(BldError):
    """Raised when a named tool is not available in the runtime environment."""


class ExitStatusError(BldError):
    """Raised when an operation completes with a non-zero exit status."""

    def __init__(self, status: int, message: str | None = None) -> None:
        super().__init__(message or f"Operation failed with exit status {status}")
        self.status = status


class CompilationFailedError(ExitStatusError):
    """Raised after all compile units ran and at least one produced diagnostics."""

    def __init__(self, diagnostics: Sequence) -> None:
        super().__init__(
            EXIT_FAILURE,
            f"Compilation failed with {len(diagnostics)} diagnostic(s)",
        )
        self.diagnostics = list(diagnostics)


class CacheWriteError(BldError):
    """Raised when the fingerprint cache cannot be persisted."""


class DescriptorPatchError(BldError):
    """Raised when a compiled module descriptor cannot be read, parsed or rewritten."""
