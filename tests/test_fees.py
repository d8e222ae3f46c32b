import pytest
from hypothesis import given, strategies as st

from btccanister.blocks import (
    Block,
    BlockHeader,
    OutPoint,
    Transaction,
    TxIn,
    TxOut,
)
from btccanister.blocktree import BlockChain, EmptyChainError
from btccanister.fees import (
    FeePercentilesCache,
    fees_per_byte,
    percentiles,
    tx_fee_per_byte,
)

PERCENTILE_BUCKETS = 101


def _p2pkh_script(tag: int) -> bytes:
    return b"\x76\xa9\x14" + bytes([tag]) * 20 + b"\x88\xac"


ADDRESS_1 = _p2pkh_script(1)
ADDRESS_2 = _p2pkh_script(2)


def _block(prev_hash: bytes, txs, nonce: int = 0) -> Block:
    header = BlockHeader(1, prev_hash, bytes(32), 1_600_000_000, 0x207FFFFF, nonce)
    return Block(header, tuple(txs))


def _coinbase(script: bytes, value: int) -> Transaction:
    return Transaction(
        inputs=(TxIn(OutPoint.null()),),
        outputs=(TxOut(value, script),),
    )


def generate_blocks(initial_balance: int, number_of_blocks: int) -> list[Block]:
    """Chain where each transfer pays a fee one satoshi higher than the last."""
    coinbase = _coinbase(ADDRESS_1, initial_balance)
    block_0 = _block(bytes(32), [coinbase])
    blocks = [block_0]
    balance = initial_balance
    previous_tx = coinbase
    previous_block = block_0
    pay = 1
    for i in range(number_of_blocks):
        change = balance - (pay + i)
        assert change >= 0, "not enough balance for the transaction"
        tx = Transaction(
            inputs=(TxIn(OutPoint(previous_tx.txid(), 0)),),
            outputs=(TxOut(change, ADDRESS_1), TxOut(pay, ADDRESS_2)),
        )
        block = _block(previous_block.block_hash(), [tx])
        blocks.append(block)
        balance = change
        previous_tx = tx
        previous_block = block
    return blocks


def lookup_for(blocks):
    outputs = {}
    for block in blocks:
        for tx in block.txdata:
            for vout, tx_out in enumerate(tx.outputs):
                outputs[OutPoint(tx.txid(), vout)] = tx_out
    return outputs.get


def test_transfer_transaction_is_119_bytes():
    blocks = generate_blocks(10_000, 1)
    assert blocks[1].txdata[0].size() == 119


def test_percentiles_empty_input():
    assert percentiles([]) == []


def test_percentiles_nearest_rank_method_simple_example():
    result = percentiles([15, 20, 35, 40, 50])
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:21] == [15] * 21
    assert result[21:41] == [20] * 20
    assert result[41:61] == [35] * 20
    assert result[61:81] == [40] * 20
    assert result[81:101] == [50] * 20


def test_percentiles_small_input():
    result = percentiles([5, 4, 3, 2, 1])
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:21] == [1] * 21
    assert result[21:41] == [2] * 20
    assert result[41:61] == [3] * 20
    assert result[61:81] == [4] * 20
    assert result[81:101] == [5] * 20


def test_percentiles_big_input():
    values = [5] * 1000 + [4] * 1000 + [3] * 1000 + [2] * 1000 + [1] * 1000
    result = percentiles(values)
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:21] == [1] * 21
    assert result[21:41] == [2] * 20
    assert result[41:61] == [3] * 20
    assert result[61:81] == [4] * 20
    assert result[81:101] == [5] * 20


def test_percentiles_sequential_numbers():
    result = percentiles(range(1, 1001))
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0] == 1
    assert result[1] == 10
    assert result[25] == 250
    assert result[50] == 500
    assert result[75] == 750
    assert result[100] == 1000
    assert result == [1] + list(range(10, 1001, 10))


@given(st.lists(st.integers(min_value=0, max_value=10**12), min_size=1))
def test_percentiles_are_sorted_members_of_input(values):
    result = percentiles(values)
    assert len(result) == PERCENTILE_BUCKETS
    assert result == sorted(result)
    assert result[0] == min(values)
    assert result[-1] == max(values)
    assert set(result) <= set(values)


def test_fees_when_requested_more_than_available():
    blocks = generate_blocks(10_000, 5)
    fees = fees_per_byte(blocks, lookup_for(blocks), 10_000)
    assert fees == [33, 25, 16, 8, 0]

    result = FeePercentilesCache().current_fee_percentiles(blocks, lookup_for(blocks))
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:21] == [0] * 21
    assert result[21:41] == [8] * 20
    assert result[41:61] == [16] * 20
    assert result[61:81] == [25] * 20
    assert result[81:101] == [33] * 20


def test_fees_when_requested_fewer_than_available():
    blocks = generate_blocks(10_000, 8)
    fees = fees_per_byte(blocks, lookup_for(blocks), 4)
    assert fees == [58, 50, 42, 33]

    result = FeePercentilesCache().current_fee_percentiles(blocks, lookup_for(blocks), 4)
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:26] == [33] * 26
    assert result[26:51] == [42] * 25
    assert result[51:76] == [50] * 25
    assert result[76:101] == [58] * 25


def test_fees_when_requested_equals_available():
    blocks = generate_blocks(10_000, 5)
    fees = fees_per_byte(blocks, lookup_for(blocks), 5)
    assert fees == [33, 25, 16, 8, 0]

    result = FeePercentilesCache().current_fee_percentiles(blocks, lookup_for(blocks), 5)
    assert result[0:21] == [0] * 21
    assert result[21:41] == [8] * 20
    assert result[41:61] == [16] * 20
    assert result[61:81] == [25] * 20
    assert result[81:101] == [33] * 20


def test_fees_big_input():
    blocks = generate_blocks(500_500, 1000)
    lookup = lookup_for(blocks)
    fees = fees_per_byte(blocks, lookup, 5)
    assert fees == [8394, 8386, 8378, 8369, 8361]

    result = FeePercentilesCache().current_fee_percentiles(blocks, lookup, 5)
    assert result[0:21] == [8361] * 21
    assert result[21:41] == [8369] * 20
    assert result[41:61] == [8378] * 20
    assert result[61:81] == [8386] * 20
    assert result[81:101] == [8394] * 20


def test_no_transactions():
    blocks = generate_blocks(10_000, 0)
    assert fees_per_byte(blocks, lookup_for(blocks), 10_000) == []
    assert FeePercentilesCache().current_fee_percentiles(blocks, lookup_for(blocks)) == []


def test_fees_from_partial_chain():
    blocks = generate_blocks(10_000, 5)
    lookup = lookup_for(blocks)
    chain = BlockChain(blocks[-2], [blocks[-1]])
    assert fees_per_byte(chain, lookup, 10_000) == [33, 25]

    result = FeePercentilesCache().current_fee_percentiles(chain, lookup)
    assert len(result) == PERCENTILE_BUCKETS
    assert result[0:51] == [25] * 51
    assert result[51:101] == [33] * 50


def test_cache_stores_results():
    blocks = generate_blocks(10_000, 5)
    chain = BlockChain(blocks[-2], [blocks[-1]])
    cache = FeePercentilesCache()
    result = cache.current_fee_percentiles(chain, lookup_for(blocks))
    assert cache.fee_percentiles == result
    assert cache.tip_block_hash == blocks[-1].block_hash()


def test_cache_is_used_while_tip_is_unchanged():
    blocks = generate_blocks(10_000, 5)
    cache = FeePercentilesCache()
    first = cache.current_fee_percentiles(blocks, lookup_for(blocks))

    def failing_lookup(outpoint):
        raise AssertionError("lookup must not be called for a cached tip")

    assert cache.current_fee_percentiles(blocks, failing_lookup) == first


def test_cache_recomputes_when_tip_changes():
    blocks = generate_blocks(10_000, 5)
    cache = FeePercentilesCache()
    cache.current_fee_percentiles(blocks[:3], lookup_for(blocks))
    assert cache.fee_percentiles[-1] == 8
    result = cache.current_fee_percentiles(blocks, lookup_for(blocks))
    assert result[-1] == 33
    assert cache.tip_block_hash == blocks[-1].block_hash()


def test_cache_rejects_empty_chain():
    with pytest.raises(EmptyChainError):
        FeePercentilesCache().current_fee_percentiles([], lambda outpoint: None)


def test_coinbase_has_no_fee():
    assert tx_fee_per_byte(_coinbase(ADDRESS_1, 50), lambda outpoint: None) is None


def test_missing_tx_out_raises():
    blocks = generate_blocks(10_000, 1)
    with pytest.raises(LookupError):
        tx_fee_per_byte(blocks[1].txdata[0], lambda outpoint: None)


def test_outputs_exceeding_inputs_raise():
    funding = _coinbase(ADDRESS_1, 10)
    tx = Transaction(
        inputs=(TxIn(OutPoint(funding.txid(), 0)),),
        outputs=(TxOut(11, ADDRESS_2),),
    )
    with pytest.raises(ValueError):
        tx_fee_per_byte(tx, {OutPoint(funding.txid(), 0): funding.outputs[0]}.get)


def test_tx_fee_per_byte_value():
    blocks = generate_blocks(10_000, 4)
    assert tx_fee_per_byte(blocks[4].txdata[0], lookup_for(blocks)) == 25