"""Compiler diagnostic patterns.

Diagnostic lines look like::

    [ERROR] /src/main/java/Foo.java:[12,8] cannot find symbol

Console formats drift between tool releases, so matching goes through a
pattern set rather than one hard-coded expression.  The default set holds
a single lenient pattern; callers may register release-specific ones
ahead of it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from silentspy.models.results import CompilerDiagnostic


@dataclass(frozen=True)
class DiagnosticPattern:
    """A named regular expression yielding ``path``, ``line``, ``col``, ``message``.

    An optional ``severity`` group is honoured when present.
    """

    name: str
    regex: re.Pattern[str]

    def match(self, line: str) -> CompilerDiagnostic | None:
        m = self.regex.match(line)
        if m is None:
            return None
        groups = m.groupdict()
        severity = (groups.get("severity") or "ERROR").upper()
        if severity == "WARN":
            severity = "WARNING"
        return CompilerDiagnostic(
            path=groups["path"].strip(),
            line=int(groups["line"]),
            column=int(groups["col"]),
            message=groups["message"].strip(),
            severity=severity,
        )


LENIENT_PATTERN = DiagnosticPattern(
    name="lenient",
    regex=re.compile(
        r"^\s*(?:\[(?P<severity>ERROR|WARNING|WARN|INFO)\]\s*)?"
        r"(?P<path>[^\s\[][^\[]*?):\[(?P<line>\d+),(?P<col>\d+)\]\s*"
        r"(?P<message>.*)$"
    ),
)


class DiagnosticPatternSet:
    """Ordered collection of patterns; the first match for a line wins."""

    def __init__(self, patterns: Iterable[DiagnosticPattern] | None = None) -> None:
        self._patterns: list[DiagnosticPattern] = list(
            patterns if patterns is not None else [LENIENT_PATTERN]
        )

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._patterns]

    def register(self, pattern: DiagnosticPattern, *, first: bool = True) -> None:
        """Add *pattern*, by default ahead of the existing ones."""
        if first:
            self._patterns.insert(0, pattern)
        else:
            self._patterns.append(pattern)

    def match(self, line: str) -> CompilerDiagnostic | None:
        for pattern in self._patterns:
            diagnostic = pattern.match(line)
            if diagnostic is not None:
                return diagnostic
        return None

    def parse(self, text: str) -> list[CompilerDiagnostic]:
        """All diagnostics in *text*, in the order they appear."""
        found: list[CompilerDiagnostic] = []
        for line in text.splitlines():
            diagnostic = self.match(line)
            if diagnostic is not None:
                found.append(diagnostic)
        return found
