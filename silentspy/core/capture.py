"""In-process output interception.

Replaces ``sys.stdout`` / ``sys.stderr`` with streams that route every
write through the unit registry.  Output written by detached child
processes never passes through here; their results are recovered from
artifacts instead.
"""

from __future__ import annotations

import io
import logging
import sys
import threading
from typing import TextIO

from silentspy.core.unit_registry import ExecutionUnitRegistry

logger = logging.getLogger(__name__)


class CapturingStream(io.TextIOBase):
    """Text stream that appends everything written to the registry."""

    def __init__(
        self,
        registry: ExecutionUnitRegistry,
        *,
        name: str = "<captured>",
        encoding: str = "utf-8",
    ) -> None:
        super().__init__()
        self._registry = registry
        self._name = name
        self._encoding = encoding

    @property
    def name(self) -> str:
        return self._name

    @property
    def encoding(self) -> str:
        return self._encoding

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def write(self, s: str) -> int:
        if not isinstance(s, str):
            raise TypeError(f"write() argument must be str, not {type(s).__name__}")
        if s:
            self._registry.write(s.encode(self._encoding, errors="replace"))
        return len(s)

    def flush(self) -> None:
        pass


class OutputCapture:
    """Installs and removes the capturing streams.

    ``install`` and ``uninstall`` are idempotent; ``uninstall`` puts back
    exactly the streams that were in place at ``install`` time.
    """

    def __init__(self, registry: ExecutionUnitRegistry) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        self._saved: tuple[TextIO, TextIO] | None = None

    @property
    def installed(self) -> bool:
        return self._saved is not None

    def install(self) -> None:
        with self._lock:
            if self._saved is not None:
                return
            self._saved = (sys.stdout, sys.stderr)
            sys.stdout = CapturingStream(self._registry, name="<stdout>")
            sys.stderr = CapturingStream(self._registry, name="<stderr>")
        logger.debug("Output capture installed")

    def uninstall(self) -> None:
        with self._lock:
            if self._saved is None:
                return
            sys.stdout, sys.stderr = self._saved
            self._saved = None
        logger.debug("Output capture removed")
