"""Bitcoin transactions, block headers and a store of headers by hash and height."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field

_HEADER_FORMAT = struct.Struct("<i32s32sIII")
HEADER_SIZE = _HEADER_FORMAT.size
HASH_SIZE = 32
_NULL_TXID = bytes(HASH_SIZE)
_NULL_VOUT = 0xFFFFFFFF


def _sha256d(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _compact_size(n: int) -> bytes:
    if n < 0:
        raise ValueError(f"length cannot be negative: {n}")
    if n < 0xFD:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def _check_hash(name: str, value: bytes) -> None:
    if len(value) != HASH_SIZE:
        raise ValueError(f"{name} must be {HASH_SIZE} bytes, got {len(value)}")


@dataclass(frozen=True, order=True)
class OutPoint:
    """A reference to an output of a transaction."""

    txid: bytes
    vout: int

    def __post_init__(self) -> None:
        _check_hash("txid", self.txid)
        if not 0 <= self.vout <= 0xFFFFFFFF:
            raise ValueError(f"vout out of range: {self.vout}")

    @classmethod
    def null(cls) -> OutPoint:
        return cls(_NULL_TXID, _NULL_VOUT)

    def encode(self) -> bytes:
        return self.txid + struct.pack("<I", self.vout)


@dataclass(frozen=True)
class TxIn:
    """A transaction input spending a previous output."""

    previous_output: OutPoint
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF

    def encode(self) -> bytes:
        return (
            self.previous_output.encode()
            + _compact_size(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )


@dataclass(frozen=True)
class TxOut:
    """A transaction output: an amount in satoshi locked by a script."""

    value: int
    script_pubkey: bytes = b""

    def encode(self) -> bytes:
        return (
            struct.pack("<Q", self.value)
            + _compact_size(len(self.script_pubkey))
            + self.script_pubkey
        )


@dataclass(frozen=True)
class Transaction:
    """A bitcoin transaction in its legacy (non-witness) serialization."""

    inputs: tuple[TxIn, ...] = ()
    outputs: tuple[TxOut, ...] = ()
    version: int = 1
    lock_time: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    def encode(self) -> bytes:
        """Return the consensus serialization of the transaction."""
        parts = [struct.pack("<i", self.version), _compact_size(len(self.inputs))]
        parts.extend(tx_in.encode() for tx_in in self.inputs)
        parts.append(_compact_size(len(self.outputs)))
        parts.extend(tx_out.encode() for tx_out in self.outputs)
        parts.append(struct.pack("<I", self.lock_time))
        return b"".join(parts)

    def txid(self) -> bytes:
        """Double SHA-256 of the serialization, in internal byte order."""
        return _sha256d(self.encode())

    def size(self) -> int:
        return len(self.encode())

    def is_coinbase(self) -> bool:
        return len(self.inputs) == 1 and self.inputs[0].previous_output == OutPoint.null()


@dataclass(frozen=True)
class BlockHeader:
    """An 80-byte bitcoin block header."""

    version: int
    prev_blockhash: bytes
    merkle_root: bytes
    time: int
    bits: int
    nonce: int

    def __post_init__(self) -> None:
        _check_hash("prev_blockhash", self.prev_blockhash)
        _check_hash("merkle_root", self.merkle_root)

    def encode(self) -> bytes:
        return _HEADER_FORMAT.pack(
            self.version,
            self.prev_blockhash,
            self.merkle_root,
            self.time,
            self.bits,
            self.nonce,
        )

    @classmethod
    def decode(cls, data: bytes) -> BlockHeader:
        """Decode a header from the first 80 bytes of ``data``."""
        if len(data) < HEADER_SIZE:
            raise ValueError(
                f"block header needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        return cls(*_HEADER_FORMAT.unpack_from(data))

    def block_hash(self) -> bytes:
        """Double SHA-256 of the header, in internal byte order."""
        return _sha256d(self.encode())


@dataclass(frozen=True)
class Block:
    """A block header together with its transactions."""

    header: BlockHeader
    txdata: tuple[Transaction, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "txdata", tuple(self.txdata))

    def block_hash(self) -> bytes:
        return self.header.block_hash()


@dataclass
class BlockHeaderStore:
    """Stores raw block headers indexed by block hash and by height."""

    block_headers: dict[bytes, bytes] = field(default_factory=dict)
    block_heights: dict[int, bytes] = field(default_factory=dict)

    def insert(self, block: Block, height: int) -> None:
        block_hash = block.block_hash()
        self.block_headers[block_hash] = block.header.encode()
        self.block_heights[height] = block_hash

    def get_with_block_hash(self, block_hash: bytes) -> BlockHeader | None:
        blob = self.block_headers.get(block_hash)
        return None if blob is None else BlockHeader.decode(blob)

    def get_with_height(self, height: int) -> BlockHeader | None:
        block_hash = self.block_heights.get(height)
        if block_hash is None:
            return None
        try:
            blob = self.block_headers[block_hash]
        except KeyError:
            raise KeyError(f"block header must exist for height {height}") from None
        return BlockHeader.decode(blob)