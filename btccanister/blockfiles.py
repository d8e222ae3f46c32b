"""Reading of a bitcoin node's block index entries and block files."""

from __future__ import annotations

import io
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .blocks import BlockHeader


@dataclass(frozen=True)
class BlockInfo:
    """Where a block is stored and which block precedes it."""

    height: int
    file_number: int
    offset: int
    prev_blockhash: bytes


def read_varint(stream: BinaryIO) -> int:
    """Read a number in the node's MSB base-128 varint format."""
    n = 0
    while True:
        byte = stream.read(1)
        if not byte:
            raise EOFError("unexpected end of data while reading varint")
        ch = byte[0]
        n = (n << 7) | (ch & 0x7F)
        if ch & 0x80:
            n += 1
        else:
            return n


def decode_block_info(value: bytes) -> Optional[BlockInfo]:
    """Decode a block index entry; ``None`` when it holds no valid header."""
    reader = io.BytesIO(value)
    read_varint(reader)  # version
    height = read_varint(reader)
    read_varint(reader)  # status
    read_varint(reader)  # number of transactions
    file_number = read_varint(reader)
    offset = read_varint(reader)
    read_varint(reader)  # undo position
    try:
        header = BlockHeader.decode(reader.read())
    except ValueError:
        return None
    return BlockInfo(height, file_number, offset, header.prev_blockhash)


def read_block(
    blocks_dir: Union[str, os.PathLike], file_number: int, offset: int
) -> bytes:
    """Read the raw block at ``offset`` of ``blk<file_number>.dat``.

    The block's size is the little-endian u32 just before ``offset``.
    """
    if offset < 4:
        raise ValueError(f"offset must leave room for the block size: {offset}")
    path = Path(blocks_dir) / f"blk{file_number:05d}.dat"
    with open(path, "rb") as blk_file:
        blk_file.seek(offset - 4)
        size_bytes = blk_file.read(4)
        if len(size_bytes) != 4:
            raise EOFError(f"cannot read block size at offset {offset} of {path}")
        (block_size,) = struct.unpack("<I", size_bytes)
        block = blk_file.read(block_size)
    if len(block) != block_size:
        raise EOFError(
            f"expected {block_size} block bytes at offset {offset} of {path}, got {len(block)}"
        )
    return block