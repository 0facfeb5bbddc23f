"""Fixed-capacity byte accumulator for one unit's captured output.

Retention policy once more than ``capacity`` bytes have been written:
keep the first ``head_bytes`` ever written and the most recent
``capacity - head_bytes``; everything in between is dropped and replaced,
on materialization, by a single marker line carrying the dropped count.

Root causes tend to sit at the start (first error) and the end (final
failure summary) of a tool's output, so both ends survive.
"""

from __future__ import annotations

DEFAULT_CAPACITY = 128 * 1024
DEFAULT_HEAD_BYTES = 48 * 1024

TRUNCATION_MARKER = b"\n[... %d bytes truncated ...]\n"


class BoundedBuffer:
    """Truncating byte buffer with head/tail retention.

    Single producer while the owning unit runs; read once after the unit
    completes.  ``append`` is amortized O(1): the tail is compacted only
    after it has grown to twice its retained size.

    Parameters
    ----------
    capacity:
        Total bytes retained (head + tail).
    head_bytes:
        Bytes kept from the very start of the stream.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        head_bytes: int = DEFAULT_HEAD_BYTES,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if not 0 <= head_bytes <= capacity:
            raise ValueError(
                f"head_bytes must be within [0, {capacity}], got {head_bytes}"
            )
        self._capacity = capacity
        self._head_limit = head_bytes
        self._tail_limit = capacity - head_bytes
        self._head = bytearray()
        self._tail = bytearray()
        self._written = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def bytes_written(self) -> int:
        """Total bytes ever appended."""
        return self._written

    @property
    def discarded(self) -> int:
        """Bytes dropped from the middle of the stream so far."""
        return max(self._written - self._capacity, 0)

    @property
    def truncated(self) -> bool:
        return self._written > self._capacity

    def __len__(self) -> int:
        return min(self._written, self._capacity)

    def __bool__(self) -> bool:
        return self._written > 0

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def append(self, data: bytes) -> None:
        """Append *data*, dropping middle bytes once over capacity."""
        if not data:
            return
        self._written += len(data)

        room = self._head_limit - len(self._head)
        if room > 0:
            self._head += data[:room]
            data = data[room:]
            if not data:
                return

        if self._tail_limit == 0:
            return
        self._tail += data
        # Compact lazily so repeated small writes stay cheap.
        if len(self._tail) > 2 * self._tail_limit:
            del self._tail[: len(self._tail) - self._tail_limit]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def getvalue(self) -> bytes:
        """Materialize the retained content, with the marker if truncated."""
        tail = bytes(self._tail[-self._tail_limit :]) if self._tail_limit else b""
        if not self.truncated:
            return bytes(self._head) + tail
        return bytes(self._head) + (TRUNCATION_MARKER % self.discarded) + tail

    def text(self, encoding: str = "utf-8") -> str:
        """Materialized content decoded leniently."""
        return self.getvalue().decode(encoding, errors="replace")

    def clear(self) -> None:
        self._head.clear()
        self._tail.clear()
        self._written = 0
