# btccanister

Building blocks for following a Bitcoin chain. The package holds blocks and
tracks the forks between them, computes fee percentiles, encodes metrics for
Prometheus, checks a large file that is uploaded in fixed-size chunks, and
reads block data from a node's data directory. Everything is plain Python
with no third-party dependencies.

## Modules

### `btccanister.blocks`

This module defines the transaction and block types: `OutPoint`, `TxIn`,
`TxOut`, `Transaction`, `BlockHeader` and `Block`.

- `Transaction.encode` gives the legacy (non-witness) consensus serialization.
- `Transaction.txid` is the double SHA-256 of that serialization.
- `Transaction.size` is the length of the serialization in bytes.
- `Transaction.is_coinbase` is true when the transaction has a single input
  that spends the null outpoint.
- `BlockHeader.encode` and `BlockHeader.decode` read and write the 80-byte
  header.
- `BlockHeader.block_hash` and `Block.block_hash` return the double SHA-256 of
  the header.

All hashes are raw bytes in internal byte order.

`BlockHeaderStore` keeps encoded headers indexed by block hash and by height.
`get_with_block_hash` and `get_with_height` return a decoded `BlockHeader`, or
`None` if nothing is stored under that key.

### `btccanister.blocktree`

A `BlockTree` holds every fork that grows from an anchor block.

- `extend(block)` adds a block whose parent is already in the tree. Adding a
  block that is already present does nothing. If the parent is missing it
  raises `BlockDoesNotExtendTree`.
- `blockchains()` lists every chain from the root to a leaf, each one as a
  `BlockChain`.
- `get_chain_with_tip(hash)` returns the `BlockChain` from the root to the block
  with that hash, or `None` if no such block is in the tree.
- `depth()` gives the depth of the tree.
- `find(hash)` returns the subtree with that root together with its depth.
- `contains(block)` tells whether the block is in the tree.
- `flatten()` turns the tree into a pre-order list of
  `(block, number_of_children)` pairs.
- `BlockTree.unflatten(items)` rebuilds the tree from such a list.

None of these recurse, so very deep chains do not exhaust the stack.

A `BlockChain` supports `first()`, `tip()`, `push(block)`, `into_chain()` and
`len()`. `BlockChain.from_blocks` raises `EmptyChainError` when it is given an
empty list.

### `btccanister.fees`

- `tx_fee_per_byte(tx, get_tx_out)` returns a transaction's fee in
  millisatoshi per byte, using integer division. `get_tx_out` maps an
  `OutPoint` to the `TxOut` it spends. Coinbase transactions give `None`.
- `fees_per_byte(chain, get_tx_out, n)` returns the fees of the last `n`
  transactions of a chain, newest first. Transactions that have no fee still
  count toward `n`.
- `percentiles(values)` returns the 0th to 100th percentiles, 101 values in
  all, using the inclusive nearest-rank method. An empty input gives `[]`.
- `FeePercentilesCache.current_fee_percentiles(chain, get_tx_out, n=10_000)`
  recomputes the percentiles only when the chain tip changes.

### `btccanister.metrics`

`MetricsEncoder(now_millis)` writes metrics in the Prometheus text exposition
format, with a timestamp on every sample. It offers `encode_gauge`,
`encode_counter`, `encode_histogram` and `encode_instruction_histogram`.

- `encode_histogram` takes non-cumulative `(upper_bound, count)` pairs and
  writes cumulative buckets. It always includes a `+Inf` bucket.
- `encode_instruction_histogram` takes any object that has `name`, `help`,
  `sum` and `buckets()`.

`getvalue()` returns the encoded text as bytes. `metrics_response(encoder)`
wraps it in an `HttpResponse` with status 200 and the `Content-Type` and
`Content-Length` headers.

### `btccanister.uploader`

Files are handled in chunks of 31 pages of 64 KiB each.

- `chunk_hashes(stream)` yields the SHA-256 hex digest of each chunk.
- `ChunkStore(initial_size_in_pages, hashes)` is a memory that is filled one
  chunk at a time.
- `upload_chunk(start_page, data)` rejects a chunk with `ChunkError` when the
  chunk is unknown or already uploaded, when its length is wrong, or when its
  hash does not match.
- `missing_chunk_indices()` lists the starting pages that have not been
  uploaded yet.
- `memory` returns the contents written so far.

### `btccanister.blockfiles`

- `read_varint(stream)` reads the node's MSB base-128 varints.
- `decode_block_info(value)` decodes the value of one block-index entry into
  a `BlockInfo` (height, file number, offset, previous block hash). It
  returns `None` when the entry holds no valid header.
- `read_block(blocks_dir, file_number, offset)` returns the raw bytes of the
  block stored at that offset of `blkNNNNN.dat`.

## Example

```python
from btccanister.fees import percentiles

buckets = percentiles([15, 20, 35, 40, 50])
assert len(buckets) == 101
assert buckets[0] == 15 and buckets[100] == 50
```

## Command line

This command prints the SHA-256 digest of every chunk of a file, one per
line. These are the hashes that a `ChunkStore` checks uploaded chunks
against.

```
btccanister-compute-hashes --file state.bin
```

## What it does not do

- It keeps no UTXO set and computes no balances or address UTXOs.
- It does not validate blocks or choose a main chain. It also keeps nothing
  on disk.
- `decode_block_info` decodes entry values but does not open the node's
  LevelDB block index. The caller has to fetch the values.
- Nothing sends chunks over a network. `ChunkStore` is an in-memory
  receiver only.

## Tests

```
pip install .[test]
pytest
```