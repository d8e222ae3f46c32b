"""Chunked upload of a file into a fixed-size memory, verified by SHA-256 hashes."""

from __future__ import annotations

import argparse
import hashlib
from collections.abc import Iterable, Iterator
from typing import BinaryIO, Optional

PAGE_SIZE_IN_BYTES = 64 * 1024
CHUNK_SIZE_IN_PAGES = 31
CHUNK_SIZE_IN_BYTES = CHUNK_SIZE_IN_PAGES * PAGE_SIZE_IN_BYTES


class ChunkError(ValueError):
    """Raised when an uploaded chunk is unexpected, mis-sized or has the wrong hash."""


class ChunkStore:
    """A memory of ``initial_size`` pages filled chunk by chunk.

    A chunk is identified by the page at which it begins; ``chunk_hashes``
    holds the expected SHA-256 hex digest of each chunk in order.
    """

    def __init__(self, initial_size: int, chunk_hashes: Iterable[str]):
        if initial_size < 0:
            raise ValueError(f"initial size cannot be negative: {initial_size}")
        self.size = initial_size
        self._memory = bytearray(initial_size * PAGE_SIZE_IN_BYTES)
        self._missing = set(range(0, initial_size, CHUNK_SIZE_IN_PAGES))
        self._hashes = list(chunk_hashes)

    @property
    def memory(self) -> bytes:
        return bytes(self._memory)

    def upload_chunk(self, chunk_start: int, data: bytes) -> None:
        """Verify and write the chunk beginning at page ``chunk_start``."""
        if chunk_start not in self._missing:
            raise ChunkError(f"invalid chunk or chunk is already uploaded: {chunk_start}")

        expected_end = min(chunk_start + CHUNK_SIZE_IN_PAGES, self.size)
        expected_length = (expected_end - chunk_start) * PAGE_SIZE_IN_BYTES
        if len(data) != expected_length:
            raise ChunkError(
                f"expected chunk to be {expected_length} bytes but found {len(data)} bytes"
            )

        index = chunk_start // CHUNK_SIZE_IN_PAGES
        if index >= len(self._hashes):
            raise ChunkError(f"no expected hash for chunk at {chunk_start}")
        expected_hash = self._hashes[index]
        actual_hash = hashlib.sha256(data).hexdigest()
        if actual_hash != expected_hash:
            raise ChunkError(
                f"Expected digest {expected_hash} but found {actual_hash}. "
                f"bytes snippet {list(data[:100])!r}"
            )

        offset = chunk_start * PAGE_SIZE_IN_BYTES
        self._memory[offset : offset + len(data)] = data
        self._missing.discard(chunk_start)

    def missing_chunk_indices(self) -> list[int]:
        """Return the starting pages of chunks not yet uploaded, ascending."""
        return sorted(self._missing)


def _read_full(stream: BinaryIO, size: int) -> bytes:
    parts = []
    remaining = size
    while remaining > 0:
        piece = stream.read(remaining)
        if not piece:
            break
        parts.append(piece)
        remaining -= len(piece)
    return b"".join(parts)


def chunk_hashes(stream: BinaryIO) -> Iterator[str]:
    """Yield the SHA-256 hex digest of each chunk of ``stream``."""
    while True:
        chunk = _read_full(stream, CHUNK_SIZE_IN_BYTES)
        if not chunk:
            return
        yield hashlib.sha256(chunk).hexdigest()


def main(argv: Optional[list[str]] = None) -> int:
    """Print the hash of each chunk of a file, one per line."""
    parser = argparse.ArgumentParser(description="Compute the hashes of the chunks of a file.")
    parser.add_argument("--file", required=True, help="The path of the file to hash.")
    args = parser.parse_args(argv)
    with open(args.file, "rb") as stream:
        for digest in chunk_hashes(stream):
            print(digest)
    return 0