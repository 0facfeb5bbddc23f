"""Attribution of captured output to execution units.

Two maps, both mutated only on the serialized event-dispatch path:

- execution context -> unit key  (which unit the calling worker runs)
- unit key          -> buffer    (where that unit's output accumulates)

Lookups from the output write path take no lock.  Mutations are made
under ``_lock`` and publish a single dict item at a time, so a reader
sees either the old binding or the new one, never a torn state.
"""

from __future__ import annotations

import logging
import threading

from silentspy.core.bounded_buffer import (
    DEFAULT_CAPACITY,
    DEFAULT_HEAD_BYTES,
    BoundedBuffer,
)
from silentspy.models.events import UnitKey

logger = logging.getLogger(__name__)


class DuplicateUnitError(RuntimeError):
    """Raised when a unit key is registered while already active."""


class ExecutionContext:
    """Opaque handle naming one logical worker.

    Each thread gets its own handle on first use.  Handles compare by
    identity and carry no thread id, so they are never reused for a
    different worker.
    """

    __slots__ = ("name",)

    def __init__(self, name: str = "") -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"ExecutionContext({self.name!r})"


_local = threading.local()


def current_context() -> ExecutionContext:
    """Return the calling worker's execution context handle."""
    ctx = getattr(_local, "context", None)
    if ctx is None:
        ctx = ExecutionContext(threading.current_thread().name)
        _local.context = ctx
    return ctx


class ExecutionUnitRegistry:
    """Concurrency-safe context/unit/buffer bookkeeping.

    Parameters
    ----------
    buffer_capacity:
        Capacity of each unit buffer (and of the shared unattributed one).
    head_bytes:
        Head retention of each buffer.
    """

    def __init__(
        self,
        buffer_capacity: int = DEFAULT_CAPACITY,
        head_bytes: int = DEFAULT_HEAD_BYTES,
    ) -> None:
        self._capacity = buffer_capacity
        self._head_bytes = head_bytes
        self._lock = threading.Lock()
        self._context_units: dict[ExecutionContext, UnitKey] = {}
        self._buffers: dict[UnitKey, BoundedBuffer] = {}
        self._unattributed = BoundedBuffer(buffer_capacity, head_bytes)
        # Writes from many unattributed workers can interleave.
        self._unattributed_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Dispatch path
    # ------------------------------------------------------------------

    def register_current_context(self, unit_key: UnitKey) -> BoundedBuffer:
        """Bind the calling context to *unit_key* and allocate its buffer."""
        return self.register(current_context(), unit_key)

    def register(self, context: ExecutionContext, unit_key: UnitKey) -> BoundedBuffer:
        """Bind *context* to *unit_key* and allocate its buffer.

        Raises
        ------
        DuplicateUnitError
            If *unit_key* is already active.
        """
        with self._lock:
            if unit_key in self._buffers:
                raise DuplicateUnitError(
                    f"Execution unit already active: {unit_key.label}"
                )
            buffer = BoundedBuffer(self._capacity, self._head_bytes)
            # Buffer first, so a concurrent lookup never finds a binding
            # without a buffer behind it.
            self._buffers[unit_key] = buffer
            self._context_units[context] = unit_key
        logger.debug("Registered %s on %r", unit_key.label, context)
        return buffer

    def release(self, unit_key: UnitKey) -> BoundedBuffer | None:
        """Drop every context binding for *unit_key* and hand back its buffer."""
        with self._lock:
            for ctx in [c for c, k in self._context_units.items() if k == unit_key]:
                del self._context_units[ctx]
            buffer = self._buffers.pop(unit_key, None)
        if buffer is None:
            logger.debug("Release of unknown unit %s", unit_key.label)
        return buffer

    def drain(self) -> list[tuple[UnitKey, BoundedBuffer]]:
        """Release every active unit; returns what was held, in start order."""
        with self._lock:
            held = list(self._buffers.items())
            self._buffers.clear()
            self._context_units.clear()
        return held

    # ------------------------------------------------------------------
    # Write path (lock-free lookups)
    # ------------------------------------------------------------------

    def unit_for(self, context: ExecutionContext) -> UnitKey | None:
        return self._context_units.get(context)

    def attributed_buffer_for(self, context: ExecutionContext) -> BoundedBuffer:
        """Buffer of the unit bound to *context*, else the unattributed pool."""
        unit_key = self._context_units.get(context)
        if unit_key is not None:
            buffer = self._buffers.get(unit_key)
            if buffer is not None:
                return buffer
        return self._unattributed

    def write(self, data: bytes, context: ExecutionContext | None = None) -> None:
        """Append *data* to the caller's unit buffer or the shared pool."""
        buffer = self.attributed_buffer_for(context or current_context())
        if buffer is not self._unattributed:
            buffer.append(data)
            return
        with self._unattributed_lock:
            buffer.append(data)

    # ------------------------------------------------------------------
    # Unattributed pool
    # ------------------------------------------------------------------

    @property
    def unattributed(self) -> BoundedBuffer:
        return self._unattributed

    def take_unattributed(self) -> bytes:
        """Materialize and reset the unattributed pool."""
        with self._unattributed_lock:
            content = self._unattributed.getvalue()
            self._unattributed.clear()
        return content

    @property
    def active_units(self) -> list[UnitKey]:
        return list(self._buffers)
