import threading


class SessionBuffer:
    """
    Ordered, append-only store of decoded PCM chunks for one voice session.

    Chunks are kept in arrival order and concatenated once, when the
    session ends. Every speaker turn in the session appends here, so the
    state is guarded by a lock rather than relying on the event loop.
    """

    def __init__(self):
        self._chunks: list[bytes] = []
        self._total_size = 0
        self._drained = False
        self._lock = threading.Lock()

    def append(self, chunk: bytes) -> None:
        """Add a chunk to the end of the buffer.

        Raises:
            RuntimeError: If the buffer has already been drained
        """
        chunk = bytes(chunk)
        with self._lock:
            if self._drained:
                raise RuntimeError("Cannot append to a drained session buffer")
            self._chunks.append(chunk)
            self._total_size += len(chunk)

    def total_size(self) -> int:
        """Sum of the lengths of every chunk appended so far."""
        with self._lock:
            return self._total_size

    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    @property
    def drained(self) -> bool:
        return self._drained

    def drain(self) -> bytes:
        """Concatenate all chunks in append order and release them.

        Raises:
            RuntimeError: If called more than once
        """
        with self._lock:
            if self._drained:
                raise RuntimeError("Session buffer has already been drained")
            self._drained = True
            data = b"".join(self._chunks)
            self._chunks = []
            return data
