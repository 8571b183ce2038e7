"""A bounded pool of reusable byte buffers."""

from __future__ import annotations

import threading
from collections import deque


class BufPool:
    """Keeps up to ``depth`` buffers of length ``buf_len`` for reuse; thread safe."""

    def __init__(self, depth: int, buf_len: int) -> None:
        self.depth = depth
        self.buf_len = buf_len
        self._bufs: deque[bytearray] = deque()
        self._lock = threading.Lock()

    def get(self) -> bytearray:
        """Return a pooled buffer trimmed to ``buf_len``, or a fresh one."""
        if self.buf_len <= 0:
            raise ValueError("BufPool: new buffer creation length must be greater than zero")
        with self._lock:
            while self._bufs:
                buf = self._bufs.popleft()
                if len(buf) < self.buf_len:
                    continue
                del buf[self.buf_len:]
                return buf
        return bytearray(self.buf_len)

    def put(self, buf: bytearray) -> None:
        """Offer a buffer back; undersized, oversized or surplus buffers are dropped."""
        if not isinstance(buf, bytearray):
            return
        if len(buf) < self.buf_len or len(buf) > self.buf_len * 2:
            return
        with self._lock:
            if len(self._bufs) < self.depth:
                self._bufs.append(buf)