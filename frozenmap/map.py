"""
FrozenMap: immutable mapping backed by a persistent HAMT.

Every "mutating" method returns a new FrozenMap that shares all untouched
subtrees with the original. The original is never altered.

    m = FrozenMap(a=1)
    m2 = m.including('b', 2)       # m is still {'a': 1}
    m3 = m2.excluding('a')         # KeyNotFoundError if 'a' were absent
    m4 = m3 | {'c': 3}             # right-biased union

    with m4.mutating() as mm:      # batch edits, copy-on-write per path
        mm['d'] = 4
        del mm['b']
        m5 = mm.finish()
"""

from collections.abc import ItemsView, KeysView, Mapping, ValuesView
from typing import Iterator

from frozenmap.bits import HASH_MASK, hash_key, mix64
from frozenmap.errors import KeyNotFoundError, UnhashableValueError
from frozenmap.mutation import MapMutation
from frozenmap.nodes import EMPTY_ROOT, W_EMPTY, W_NOT_FOUND

_NOT_FOUND = object()


def _entry_hash(key_hash: int, value_hash: int) -> int:
    """Hash of one entry, shuffled so XOR-combining entries stays well spread."""
    h = mix64(key_hash ^ ((value_hash & HASH_MASK) * 0x9E3779B97F4A7C15 & HASH_MASK))
    return (((h ^ 89869747) ^ (h << 16)) * 3644798167) & HASH_MASK


class FrozenMapKeys(KeysView):

    def __iter__(self):
        for leaf in self._mapping._root.iter_leaves():
            yield leaf.key


class FrozenMapValues(ValuesView):

    def __iter__(self):
        for leaf in self._mapping._root.iter_leaves():
            yield leaf.value


class FrozenMapItems(ItemsView):

    def __iter__(self):
        for leaf in self._mapping._root.iter_leaves():
            yield (leaf.key, leaf.value)


class FrozenMap(Mapping):
    """Immutable key/value mapping with O(log N) persistent updates.

    Can be built from another FrozenMap (O(1), the trie is shared), from an
    open MapMutation (O(1) snapshot), from any object with keys(), or from
    an iterable of (key, value) pairs. Keyword arguments are applied last and
    duplicate keys keep the last value.
    """

    __slots__ = ('_root', '_count', '_hash', '__weakref__')

    def __init__(self, collection=(), **kwargs):
        self._hash = None
        if not kwargs:
            if isinstance(collection, FrozenMap):
                self._root = collection._root
                self._count = collection._count
                return
            if isinstance(collection, MapMutation):
                self._root, self._count = collection._publish()
                return

        self._root = EMPTY_ROOT
        self._count = 0
        mutation = MapMutation(self)
        mutation.update(collection, **kwargs)
        self._root, self._count = mutation._publish()
        mutation.close()

    @classmethod
    def _new(cls, root, count: int) -> 'FrozenMap':
        m = cls.__new__(cls)
        m._root = root
        m._count = count
        m._hash = None
        return m

    # ============================================================
    # Read operations
    # ============================================================

    def __getitem__(self, key):
        value = self._root.find(0, hash_key(key), key, _NOT_FOUND)
        if value is _NOT_FOUND:
            raise KeyNotFoundError(key)
        return value

    def get(self, key, default=None):
        return self._root.find(0, hash_key(key), key, default)

    def __contains__(self, key) -> bool:
        return self._root.find(0, hash_key(key), key, _NOT_FOUND) is not _NOT_FOUND

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator:
        for leaf in self._root.iter_leaves():
            yield leaf.key

    def keys(self) -> FrozenMapKeys:
        return FrozenMapKeys(self)

    def values(self) -> FrozenMapValues:
        return FrozenMapValues(self)

    def items(self) -> FrozenMapItems:
        return FrozenMapItems(self)

    # ============================================================
    # Persistent updates
    # ============================================================

    def including(self, key, value) -> 'FrozenMap':
        """Return a map with `key` bound to `value`."""
        root, added = self._root.assoc(0, hash_key(key), key, value, 0)
        if root is self._root:
            return self
        return self._new(root, self._count + 1 if added else self._count)

    def excluding(self, key) -> 'FrozenMap':
        """Return a map without `key`. Raises KeyNotFoundError if it is absent."""
        status, root = self._root.without(0, hash_key(key), key, 0)
        if status == W_NOT_FOUND:
            raise KeyNotFoundError(key)
        if status == W_EMPTY:
            return self._new(EMPTY_ROOT, 0)
        return self._new(root, self._count - 1)

    def union(self, mapping=(), **kwargs) -> 'FrozenMap':
        """Right-biased merge: entries of `mapping` and `kwargs` win."""
        mutation = MapMutation(self)
        mutation.update(mapping, **kwargs)
        result = mutation.finish()
        if result._root is self._root:
            return self
        return result

    def __or__(self, other):
        if not isinstance(other, Mapping):
            return NotImplemented
        return self.union(other)

    def __ror__(self, other):
        if not isinstance(other, Mapping):
            return NotImplemented
        return FrozenMap(other).union(self)

    def mutating(self) -> MapMutation:
        """Open a copy-on-write mutation view over this map."""
        return MapMutation(self)

    # ============================================================
    # Identity
    # ============================================================

    def __eq__(self, other):
        if isinstance(other, FrozenMap):
            if self._root is other._root:
                return True
            if self._count != other._count:
                return False
            if self._hash is not None and other._hash is not None \
                    and self._hash != other._hash:
                return False
            other_root = other._root
            for leaf in self._root.iter_leaves():
                value = other_root.find(0, leaf.hash, leaf.key, _NOT_FOUND)
                if value is _NOT_FOUND or not (value is leaf.value or value == leaf.value):
                    return False
            return True

        if not isinstance(other, Mapping):
            return NotImplemented
        if len(other) != self._count:
            return False
        for leaf in self._root.iter_leaves():
            value = other.get(leaf.key, _NOT_FOUND)
            if value is _NOT_FOUND or not (value is leaf.value or value == leaf.value):
                return False
        return True

    def __hash__(self) -> int:
        if self._hash is not None:
            return self._hash
        h = 0
        for leaf in self._root.iter_leaves():
            try:
                value_hash = hash(leaf.value)
            except TypeError as e:
                raise UnhashableValueError(
                    f"unhashable value {type(leaf.value).__name__!r} "
                    f"stored under key {leaf.key!r}"
                ) from e
            h ^= _entry_hash(leaf.hash, value_hash)
        h = mix64(h ^ ((self._count + 1) * 1927868237 & HASH_MASK))
        self._hash = hash(h)
        return self._hash

    def __reduce__(self):
        return (type(self), (dict(self.items()),))

    def __repr__(self):
        entries = ", ".join(f"{k!r}: {v!r}" for k, v in self.items())
        return f"{type(self).__name__}({{{entries}}})"

