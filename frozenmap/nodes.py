"""
HAMT node types for the frozenmap package.

Node kinds:
    Leaf           - one key/value pair plus the key's full 64-bit hash
    BitmapNode     - up to 16 compacted children, slot presence in a 32-bit bitmap
    ArrayNode      - 32 direct slots (None when empty), used once a level is dense
    CollisionNode  - leaves whose full hashes are identical

Children of BitmapNode and ArrayNode may be any node kind. A CollisionNode
only ever holds Leaf objects.

Every operation returns the node it was called on when nothing changed, and
otherwise copies only the nodes on the path to the touched slot. A node whose
`mutid` equals the non-zero `mutid` passed in belongs to the running
MapMutation session and is edited in place instead of copied. Published maps
only ever reference nodes whose session has ended, so they are never mutated.
"""

import itertools
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union

from frozenmap.bits import (
    ARRAY_NODE_THRESHOLD, BITS_PER_LEVEL, BRANCH_FACTOR,
    bitindex, bitpos, chunk,
)


class NodeKind(Enum):
    LEAF = "leaf"
    BITMAP = "bitmap"
    ARRAY = "array"
    COLLISION = "collision"


# Status codes returned by without()
W_NOT_FOUND = 0  # key absent, node untouched
W_EMPTY = 1      # node lost its last entry and should be dropped by the parent
W_NEWNODE = 2    # node changed, replacement returned alongside

_mutids = itertools.count(1)


def next_mutid() -> int:
    """Allocate a mutation session id. Zero is reserved for published nodes."""
    return next(_mutids)


class Leaf:
    """Single key/value entry."""

    __slots__ = ('hash', 'key', 'value')
    kind = NodeKind.LEAF

    def __init__(self, h: int, key, value):
        self.hash = h
        self.key = key
        self.value = value

    def matches(self, h: int, key) -> bool:
        return self.hash == h and (self.key is key or self.key == key)

    def iter_leaves(self) -> Iterator['Leaf']:
        yield self

    def __repr__(self):
        return f"Leaf({self.key!r}: {self.value!r})"


Node = Union[Leaf, 'BitmapNode', 'ArrayNode', 'CollisionNode']


def _merge_leaves(shift: int, old: Leaf, new: Leaf, mutid: int) -> Node:
    """Build the smallest subtree holding two leaves that met in one slot."""
    if old.hash == new.hash:
        return CollisionNode(old.hash, [old, new], mutid)
    old_slot = chunk(old.hash, shift)
    new_slot = chunk(new.hash, shift)
    if old_slot == new_slot:
        sub = _merge_leaves(shift + BITS_PER_LEVEL, old, new, mutid)
        return BitmapNode(1 << old_slot, [sub], mutid)
    children = [old, new] if old_slot < new_slot else [new, old]
    return BitmapNode((1 << old_slot) | (1 << new_slot), children, mutid)


def _lift(node: Node) -> Node:
    """A branch left holding one leaf or collision chain is replaced by it."""
    if type(node) is BitmapNode and len(node.children) == 1:
        only = node.children[0]
        if type(only) is Leaf or type(only) is CollisionNode:
            return only
    return node


class BitmapNode:
    """Sparse branch: `children[popcount(bitmap & (bit - 1))]` is the slot for `bit`."""

    __slots__ = ('bitmap', 'children', 'mutid')
    kind = NodeKind.BITMAP

    def __init__(self, bitmap: int, children: List[Node], mutid: int = 0):
        self.bitmap = bitmap
        self.children = children
        self.mutid = mutid

    def find(self, shift: int, h: int, key, default):
        bit = bitpos(h, shift)
        if not self.bitmap & bit:
            return default
        child = self.children[bitindex(self.bitmap, bit)]
        if type(child) is Leaf:
            return child.value if child.matches(h, key) else default
        return child.find(shift + BITS_PER_LEVEL, h, key, default)

    def assoc(self, shift: int, h: int, key, value, mutid: int) -> Tuple[Node, bool]:
        bit = bitpos(h, shift)
        idx = bitindex(self.bitmap, bit)

        if self.bitmap & bit:
            child = self.children[idx]
            if type(child) is Leaf:
                if child.matches(h, key):
                    if child.value is value:
                        return self, False
                    return self._replace(idx, Leaf(h, key, value), mutid), False
                sub = _merge_leaves(shift + BITS_PER_LEVEL, child, Leaf(h, key, value), mutid)
                return self._replace(idx, sub, mutid), True
            sub, added = child.assoc(shift + BITS_PER_LEVEL, h, key, value, mutid)
            if sub is child:
                return self, added
            return self._replace(idx, sub, mutid), added

        n = len(self.children)
        if n >= ARRAY_NODE_THRESHOLD:
            # Dense enough: spread the children into a full 32-slot array node
            slots: List[Optional[Node]] = [None] * BRANCH_FACTOR
            j = 0
            for i in range(BRANCH_FACTOR):
                if (self.bitmap >> i) & 1:
                    slots[i] = self.children[j]
                    j += 1
            slots[chunk(h, shift)] = Leaf(h, key, value)
            return ArrayNode(n + 1, slots, mutid), True

        leaf = Leaf(h, key, value)
        if mutid and self.mutid == mutid:
            self.children.insert(idx, leaf)
            self.bitmap |= bit
            return self, True
        children = self.children[:idx]
        children.append(leaf)
        children.extend(self.children[idx:])
        return BitmapNode(self.bitmap | bit, children, mutid), True

    def without(self, shift: int, h: int, key, mutid: int) -> Tuple[int, Optional[Node]]:
        bit = bitpos(h, shift)
        if not self.bitmap & bit:
            return W_NOT_FOUND, None
        idx = bitindex(self.bitmap, bit)
        child = self.children[idx]

        if type(child) is Leaf:
            if not child.matches(h, key):
                return W_NOT_FOUND, None
            return self._remove(idx, bit, mutid)

        status, sub = child.without(shift + BITS_PER_LEVEL, h, key, mutid)
        if status == W_NOT_FOUND:
            return status, None
        if status == W_EMPTY:
            return self._remove(idx, bit, mutid)
        sub = _lift(sub)
        if sub is child:
            return W_NEWNODE, self
        return W_NEWNODE, self._replace(idx, sub, mutid)

    def _replace(self, idx: int, child: Node, mutid: int) -> 'BitmapNode':
        if mutid and self.mutid == mutid:
            self.children[idx] = child
            return self
        children = self.children.copy()
        children[idx] = child
        return BitmapNode(self.bitmap, children, mutid)

    def _remove(self, idx: int, bit: int, mutid: int) -> Tuple[int, Optional[Node]]:
        if self.bitmap == bit:
            return W_EMPTY, None
        if mutid and self.mutid == mutid:
            del self.children[idx]
            self.bitmap ^= bit
            return W_NEWNODE, self
        children = self.children[:idx] + self.children[idx + 1:]
        return W_NEWNODE, BitmapNode(self.bitmap ^ bit, children, mutid)

    def iter_leaves(self) -> Iterator[Leaf]:
        for child in self.children:
            yield from child.iter_leaves()

    def __repr__(self):
        return f"BitmapNode({self.bitmap:#010x}, {len(self.children)} children)"


class ArrayNode:
    """Dense branch with one slot per hash chunk value."""

    __slots__ = ('count', 'children', 'mutid')
    kind = NodeKind.ARRAY

    def __init__(self, count: int, children: List[Optional[Node]], mutid: int = 0):
        self.count = count
        self.children = children
        self.mutid = mutid

    def find(self, shift: int, h: int, key, default):
        child = self.children[chunk(h, shift)]
        if child is None:
            return default
        if type(child) is Leaf:
            return child.value if child.matches(h, key) else default
        return child.find(shift + BITS_PER_LEVEL, h, key, default)

    def assoc(self, shift: int, h: int, key, value, mutid: int) -> Tuple[Node, bool]:
        idx = chunk(h, shift)
        child = self.children[idx]

        if child is None:
            return self._replace(idx, Leaf(h, key, value), self.count + 1, mutid), True
        if type(child) is Leaf:
            if child.matches(h, key):
                if child.value is value:
                    return self, False
                return self._replace(idx, Leaf(h, key, value), self.count, mutid), False
            sub = _merge_leaves(shift + BITS_PER_LEVEL, child, Leaf(h, key, value), mutid)
            return self._replace(idx, sub, self.count, mutid), True

        sub, added = child.assoc(shift + BITS_PER_LEVEL, h, key, value, mutid)
        if sub is child:
            return self, added
        return self._replace(idx, sub, self.count, mutid), added

    def without(self, shift: int, h: int, key, mutid: int) -> Tuple[int, Optional[Node]]:
        idx = chunk(h, shift)
        child = self.children[idx]
        if child is None:
            return W_NOT_FOUND, None

        if type(child) is Leaf:
            if not child.matches(h, key):
                return W_NOT_FOUND, None
            return self._clear(idx, mutid)

        status, sub = child.without(shift + BITS_PER_LEVEL, h, key, mutid)
        if status == W_NOT_FOUND:
            return status, None
        if status == W_EMPTY:
            return self._clear(idx, mutid)
        sub = _lift(sub)
        if sub is child:
            return W_NEWNODE, self
        return W_NEWNODE, self._replace(idx, sub, self.count, mutid)

    def _replace(self, idx: int, child: Optional[Node], count: int, mutid: int) -> 'ArrayNode':
        if mutid and self.mutid == mutid:
            self.children[idx] = child
            self.count = count
            return self
        children = self.children.copy()
        children[idx] = child
        return ArrayNode(count, children, mutid)

    def _clear(self, idx: int, mutid: int) -> Tuple[int, Optional[Node]]:
        count = self.count - 1
        if count == 0:
            return W_EMPTY, None
        if count < ARRAY_NODE_THRESHOLD:
            bitmap = 0
            children = []
            for i, child in enumerate(self.children):
                if i != idx and child is not None:
                    bitmap |= 1 << i
                    children.append(child)
            return W_NEWNODE, BitmapNode(bitmap, children, mutid)
        return W_NEWNODE, self._replace(idx, None, count, mutid)

    def iter_leaves(self) -> Iterator[Leaf]:
        for child in self.children:
            if child is not None:
                yield from child.iter_leaves()

    def __repr__(self):
        return f"ArrayNode({self.count} children)"


class CollisionNode:
    """Linear chain of leaves sharing one full hash."""

    __slots__ = ('hash', 'leaves', 'mutid')
    kind = NodeKind.COLLISION

    def __init__(self, h: int, leaves: List[Leaf], mutid: int = 0):
        self.hash = h
        self.leaves = leaves
        self.mutid = mutid

    def _index(self, key) -> int:
        for i, leaf in enumerate(self.leaves):
            if leaf.key is key or leaf.key == key:
                return i
        return -1

    def find(self, shift: int, h: int, key, default):
        if h != self.hash:
            return default
        idx = self._index(key)
        if idx < 0:
            return default
        return self.leaves[idx].value

    def assoc(self, shift: int, h: int, key, value, mutid: int) -> Tuple[Node, bool]:
        if h != self.hash:
            # Different hash: hang this chain under a bitmap node at its level
            node = BitmapNode(bitpos(self.hash, shift), [self], mutid)
            return node.assoc(shift, h, key, value, mutid)

        idx = self._index(key)
        leaf = Leaf(h, key, value)
        in_place = mutid and self.mutid == mutid
        if idx < 0:
            if in_place:
                self.leaves.append(leaf)
                return self, True
            return CollisionNode(h, self.leaves + [leaf], mutid), True

        if self.leaves[idx].value is value:
            return self, False
        if in_place:
            self.leaves[idx] = leaf
            return self, False
        leaves = self.leaves.copy()
        leaves[idx] = leaf
        return CollisionNode(h, leaves, mutid), False

    def without(self, shift: int, h: int, key, mutid: int) -> Tuple[int, Optional[Node]]:
        if h != self.hash:
            return W_NOT_FOUND, None
        idx = self._index(key)
        if idx < 0:
            return W_NOT_FOUND, None
        if len(self.leaves) == 2:
            return W_NEWNODE, self.leaves[1 - idx]
        if mutid and self.mutid == mutid:
            del self.leaves[idx]
            return W_NEWNODE, self
        return W_NEWNODE, CollisionNode(h, self.leaves[:idx] + self.leaves[idx + 1:], mutid)

    def iter_leaves(self) -> Iterator[Leaf]:
        return iter(self.leaves)

    def __repr__(self):
        return f"CollisionNode({self.hash:#018x}, {len(self.leaves)} leaves)"


EMPTY_ROOT = BitmapNode(0, [], 0)
