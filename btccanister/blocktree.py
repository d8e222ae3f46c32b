"""A tree of connected blocks and the chains that run through it."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Optional

from .blocks import Block


class EmptyChainError(ValueError):
    """Raised when a chain would be built from an empty list of blocks."""

    def __init__(self, message: str = "cannot create a `BlockChain` from an empty chain"):
        super().__init__(message)


class BlockDoesNotExtendTree(Exception):
    """Raised when a block is not a successor of any block in the tree."""

    def __init__(self, block: Block):
        super().__init__(f"block {block.block_hash()[::-1].hex()} does not extend the tree")
        self.block = block


class BlockChain:
    """A non-empty chain: a first block followed by its successors."""

    def __init__(self, first: Block, successors: Iterable[Block] = ()):
        self._first = first
        self._successors = list(successors)

    @classmethod
    def from_blocks(cls, blocks: Iterable[Block]) -> BlockChain:
        blocks = list(blocks)
        if not blocks:
            raise EmptyChainError()
        return cls(blocks[0], blocks[1:])

    def push(self, block: Block) -> None:
        self._successors.append(block)

    def __len__(self) -> int:
        return len(self._successors) + 1

    def first(self) -> Block:
        return self._first

    def tip(self) -> Block:
        return self._successors[-1] if self._successors else self._first

    def into_chain(self) -> list[Block]:
        return [self._first, *self._successors]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockChain):
            return NotImplemented
        return self.into_chain() == other.into_chain()

    def __repr__(self) -> str:
        return f"BlockChain(len={len(self)}, tip={self.tip().block_hash()[::-1].hex()})"


class BlockTree:
    """A tree of blocks rooted at an anchor block."""

    def __init__(self, root: Block, children: Optional[list[BlockTree]] = None):
        self.root = root
        self.children: list[BlockTree] = children if children is not None else []

    def _preorder(self) -> Iterator[tuple[BlockTree, int]]:
        stack: list[tuple[BlockTree, int]] = [(self, 0)]
        while stack:
            node, depth = stack.pop()
            yield node, depth
            stack.extend((child, depth + 1) for child in reversed(node.children))

    def extend(self, block: Block) -> None:
        """Add ``block`` to the tree; a block already present is a no-op."""
        if self.contains(block):
            return
        found = self.find(block.header.prev_blockhash)
        if found is None:
            raise BlockDoesNotExtendTree(block)
        subtree, _ = found
        subtree.children.append(BlockTree(block))

    def blockchains(self) -> list[BlockChain]:
        """Return every chain from the root to a leaf, in depth-first order."""
        chains = []
        stack: list[tuple[BlockTree, list[Block]]] = [(self, [])]
        while stack:
            node, path = stack.pop()
            path = path + [node.root]
            if not node.children:
                chains.append(BlockChain(path[0], path[1:]))
            else:
                stack.extend((child, path) for child in reversed(node.children))
        return chains

    def get_chain_with_tip(self, tip: bytes) -> BlockChain | None:
        """Return the chain from the root to the block with hash ``tip``."""
        stack: list[tuple[BlockTree, int]] = [(self, 0)]
        path: list[Block] = []
        while stack:
            node, depth = stack.pop()
            del path[depth:]
            path.append(node.root)
            if node.root.block_hash() == tip:
                return BlockChain(path[0], path[1:])
            stack.extend((child, depth + 1) for child in reversed(node.children))
        return None

    def depth(self) -> int:
        return max(depth for _, depth in self._preorder())

    def find(self, block_hash: bytes) -> tuple[BlockTree, int] | None:
        """Return the subtree rooted at ``block_hash`` and its depth, if any."""
        for node, depth in self._preorder():
            if node.root.block_hash() == block_hash:
                return node, depth
        return None

    def contains(self, block: Block) -> bool:
        return self.find(block.block_hash()) is not None

    def flatten(self) -> list[tuple[Block, int]]:
        """Return the tree as a pre-order list of (block, number of children)."""
        return [(node.root, len(node.children)) for node, _ in self._preorder()]

    @classmethod
    def unflatten(cls, items: Iterable[tuple[Block, int]]) -> BlockTree:
        """Rebuild a tree from the list produced by :meth:`flatten`."""
        it = iter(items)
        try:
            root, count = next(it)
        except StopIteration:
            raise ValueError("root must exist") from None
        tree = cls(root)
        stack = [[tree, count]]
        while stack:
            entry = stack[-1]
            if entry[1] == 0:
                stack.pop()
                continue
            try:
                block, child_count = next(it)
            except StopIteration:
                raise ValueError("flattened tree ended before all children were read") from None
            child = cls(block)
            entry[0].children.append(child)
            entry[1] -= 1
            stack.append([child, child_count])
        return tree

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BlockTree):
            return NotImplemented
        return self.flatten() == other.flatten()

    def __repr__(self) -> str:
        return (
            f"BlockTree(root={self.root.block_hash()[::-1].hex()}, "
            f"children={len(self.children)})"
        )