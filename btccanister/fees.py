"""Fee-per-byte statistics over the most recent transactions of a chain."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from itertools import islice
from typing import Optional, Union

from .blocks import Block, OutPoint, Transaction, TxOut
from .blocktree import BlockChain, EmptyChainError

NUM_TRANSACTIONS = 10_000
MAX_PERCENTILE = 100

TxOutLookup = Callable[[OutPoint], Optional[TxOut]]
Chain = Union[BlockChain, Sequence[Block]]


def percentiles(values: Iterable[int]) -> list[int]:
    """Return the 0th to 100th percentiles by the inclusive nearest-rank method.

    An empty input gives an empty list; otherwise the result has 101 entries.
    """
    ordered = sorted(values)
    if not ordered:
        return []
    n = len(ordered)
    result = []
    for p in range(MAX_PERCENTILE + 1):
        ordinal_rank = -(-p * n // MAX_PERCENTILE)
        result.append(ordered[max(0, ordinal_rank - 1)])
    return result


def tx_fee_per_byte(tx: Transaction, get_tx_out: TxOutLookup) -> int | None:
    """Return the fee of ``tx`` in millisatoshi per byte.

    Coinbase and zero-size transactions have no fee and give ``None``.
    ``get_tx_out`` resolves the outputs spent by the inputs of ``tx``.
    """
    if tx.is_coinbase():
        return None

    satoshi = 0
    for tx_in in tx.inputs:
        outpoint = tx_in.previous_output
        tx_out = get_tx_out(outpoint)
        if tx_out is None:
            raise LookupError(f"tx out of outpoint {outpoint!r} must exist")
        satoshi += tx_out.value
    satoshi -= sum(tx_out.value for tx_out in tx.outputs)
    if satoshi < 0:
        raise ValueError("transaction outputs exceed its inputs")

    size = tx.size()
    if size == 0:
        return None
    return (1000 * satoshi) // size


def _blocks_of(chain: Chain) -> list[Block]:
    if isinstance(chain, BlockChain):
        return chain.into_chain()
    return list(chain)


def fees_per_byte(
    main_chain: Chain, get_tx_out: TxOutLookup, number_of_transactions: int
) -> list[int]:
    """Return fees of the last ``number_of_transactions`` transactions, newest first.

    Transactions without a fee (such as coinbases) count toward the limit
    but contribute no entry.
    """
    blocks = _blocks_of(main_chain)
    newest_first = (tx for block in reversed(blocks) for tx in block.txdata)
    fees = []
    for tx in islice(newest_first, max(0, number_of_transactions)):
        fee = tx_fee_per_byte(tx, get_tx_out)
        if fee is not None:
            fees.append(fee)
    return fees


@dataclass
class FeePercentilesCache:
    """Fee percentiles remembered for the chain tip they were computed at."""

    tip_block_hash: Optional[bytes] = None
    fee_percentiles: list[int] = field(default_factory=list)

    def current_fee_percentiles(
        self,
        main_chain: Chain,
        get_tx_out: TxOutLookup,
        number_of_transactions: int = NUM_TRANSACTIONS,
    ) -> list[int]:
        """Return the fee percentiles of the chain, recomputing only when its tip changes."""
        blocks = _blocks_of(main_chain)
        if not blocks:
            raise EmptyChainError()
        tip_block_hash = blocks[-1].block_hash()

        if self.tip_block_hash == tip_block_hash:
            return list(self.fee_percentiles)

        result = percentiles(fees_per_byte(blocks, get_tx_out, number_of_transactions))
        self.tip_block_hash = tip_block_hash
        self.fee_percentiles = list(result)
        return result