"""
MapMutation: copy-on-write transaction view over a FrozenMap.

The view starts out sharing every node of the map it was opened on. The
first write to a path copies that path, tagging the copies with the
session's mutation id; later writes that reach an already-copied node edit
it in place. finish() hands the working root to a new FrozenMap in O(1).

After finish() or close() every operation raises MutationClosedError.
"""

from typing import TYPE_CHECKING, Tuple

from frozenmap.bits import hash_key
from frozenmap.errors import KeyNotFoundError, MutationClosedError
from frozenmap.nodes import EMPTY_ROOT, W_EMPTY, W_NOT_FOUND, next_mutid

import scope_trace

if TYPE_CHECKING:
    from frozenmap.map import FrozenMap

_NOT_FOUND = object()


class MapMutation:
    """Batch editor for a FrozenMap. Use as a context manager to guarantee close."""

    __slots__ = ('_root', '_count', '_mutid')

    def __init__(self, frozen_map: 'FrozenMap'):
        self._root = frozen_map._root
        self._count = frozen_map._count
        self._mutid = next_mutid()

    def _check(self):
        if not self._mutid:
            raise MutationClosedError("mutation view has been closed")

    @property
    def closed(self) -> bool:
        return not self._mutid

    # ============================================================
    # Reads
    # ============================================================

    def __getitem__(self, key):
        self._check()
        value = self._root.find(0, hash_key(key), key, _NOT_FOUND)
        if value is _NOT_FOUND:
            raise KeyNotFoundError(key)
        return value

    def get(self, key, default=None):
        self._check()
        return self._root.find(0, hash_key(key), key, default)

    def __contains__(self, key) -> bool:
        self._check()
        return self._root.find(0, hash_key(key), key, _NOT_FOUND) is not _NOT_FOUND

    def __len__(self) -> int:
        self._check()
        return self._count

    # ============================================================
    # Writes
    # ============================================================

    def set(self, key, value):
        self._check()
        self._root, added = self._root.assoc(0, hash_key(key), key, value, self._mutid)
        if added:
            self._count += 1

    __setitem__ = set

    def delete(self, key):
        """Remove `key`. Raises KeyNotFoundError if it is absent."""
        self._check()
        status, root = self._root.without(0, hash_key(key), key, self._mutid)
        if status == W_NOT_FOUND:
            raise KeyNotFoundError(key)
        self._root = EMPTY_ROOT if status == W_EMPTY else root
        self._count -= 1

    __delitem__ = delete

    def pop(self, key, *default):
        if len(default) > 1:
            raise TypeError(f"pop expected at most 2 arguments, got {len(default) + 1}")
        self._check()
        value = self._root.find(0, hash_key(key), key, _NOT_FOUND)
        if value is _NOT_FOUND:
            if default:
                return default[0]
            raise KeyNotFoundError(key)
        self.delete(key)
        return value

    def update(self, collection=(), **kwargs):
        """Apply entries from a mapping or an iterable of pairs, then kwargs."""
        self._check()
        from frozenmap.map import FrozenMap

        if isinstance(collection, (FrozenMap, MapMutation)):
            if isinstance(collection, MapMutation):
                collection._check()
            if collection is not self:
                for leaf in collection._root.iter_leaves():
                    self._root, added = self._root.assoc(
                        0, leaf.hash, leaf.key, leaf.value, self._mutid)
                    if added:
                        self._count += 1
        elif hasattr(collection, 'keys'):
            for key in collection.keys():
                self.set(key, collection[key])
        else:
            for i, item in enumerate(collection):
                try:
                    key, value = item
                except (TypeError, ValueError) as e:
                    raise type(e)(
                        f"update sequence element #{i} is not a key/value pair"
                    ) from e
                self.set(key, value)

        for key, value in kwargs.items():
            self.set(key, value)

    # ============================================================
    # Publishing and lifecycle
    # ============================================================

    def _publish(self) -> Tuple[object, int]:
        """Hand out the working root. Later writes use a fresh mutation id."""
        self._check()
        root, count = self._root, self._count
        self._mutid = next_mutid()
        return root, count

    def finish(self) -> 'FrozenMap':
        """Return the edited map and close the view."""
        from frozenmap.map import FrozenMap

        root, count = self._publish()
        self._mutid = 0
        scope_trace.trace(scope_trace.TRACE_VERBOSE, "MUTATION", f"finished with {count} entries")
        return FrozenMap._new(root, count)

    def close(self):
        self._mutid = 0

    def __enter__(self) -> 'MapMutation':
        self._check()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __eq__(self, other):
        from frozenmap.map import FrozenMap

        self._check()
        if isinstance(other, MapMutation):
            other._check()
            other = FrozenMap._new(other._root, other._count)
        return FrozenMap._new(self._root, self._count) == other

    __hash__ = None

    def __repr__(self):
        if not self._mutid:
            return "<MapMutation closed>"
        return f"<MapMutation with {self._count} entries>"
