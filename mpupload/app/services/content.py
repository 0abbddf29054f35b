"""Byte sources that supply the content of each uploaded part.

A content source is any callable taking a byte count and returning exactly
that many bytes. The orchestrator calls it once per part, in part order.
"""

from __future__ import annotations

import os
import random
from typing import BinaryIO, Callable

ContentSource = Callable[[int], bytes]


def random_content(size: int) -> bytes:
    """Return ``size`` bytes from the operating system's random source."""
    return os.urandom(size)


def seeded_content(seed: int) -> ContentSource:
    """Build a reproducible pseudo-random source; the same seed yields the same stream."""
    rng = random.Random(seed)

    def _next(size: int) -> bytes:
        return rng.randbytes(size)

    return _next


class FileContentSource:
    """Reads consecutive parts from a binary stream.

    Each call consumes the next ``size`` bytes. A short read means the
    stream holds fewer bytes than the requested part sizes add up to.
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def __call__(self, size: int) -> bytes:
        data = self._stream.read(size)
        if len(data) != size:
            raise EOFError(
                f"Expected {size} bytes at offset {self._offset}, got {len(data)}"
            )
        self._offset += size
        return data
