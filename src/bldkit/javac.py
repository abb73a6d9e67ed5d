"""
javac output parsing.

javac reports one diagnostic per header line (``File.java:12: error: msg``
or a location-less ``error: msg`` / ``Note: msg``) followed by source and
caret lines, and ends with ``N errors`` style counts.
"""

from __future__ import annotations

import re
from typing import Optional

from bldkit.models import Diagnostic, Severity

TOOL_NAME = "javac"

_LOCATED = re.compile(r"^(?P<source>.+?):(?P<line>\d+): (?P<kind>error|warning|note): (?P<message>.*)$")
_UNLOCATED = re.compile(r"^(?P<kind>error|warning|Note|note): (?P<message>.*)$")
_SUMMARY = re.compile(r"^\d+ (?:error|errors|warning|warnings)$")

_SEVERITIES: dict[str, Severity] = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "note": Severity.NOTE,
}


def parse_diagnostics(output: str) -> list[Diagnostic]:
    """Split javac text output into diagnostics, in output order."""
    diagnostics: list[Diagnostic] = []
    current: Optional[dict] = None

    def flush() -> None:
        if current is not None:
            diagnostics.append(
                Diagnostic(
                    severity=current["severity"],
                    message="\n".join(current["lines"]),
                    source=current["source"],
                    line=current["line"],
                )
            )

    for raw in output.splitlines():
        if not raw.strip():
            continue
        if _SUMMARY.match(raw.strip()):
            continue

        located = _LOCATED.match(raw)
        unlocated = None if located else _UNLOCATED.match(raw)
        if located:
            flush()
            current = {
                "severity": _SEVERITIES[located["kind"]],
                "lines": [located["message"]],
                "source": located["source"],
                "line": int(located["line"]),
            }
        elif unlocated:
            flush()
            current = {
                "severity": _SEVERITIES[unlocated["kind"].lower()],
                "lines": [unlocated["message"]],
                "source": None,
                "line": None,
            }
        elif current is not None:
            current["lines"].append(raw)
        else:
            current = {"severity": Severity.OTHER, "lines": [raw], "source": None, "line": None}

    flush()
    return diagnostics
