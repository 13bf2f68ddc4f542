"""
Frozenmap Package

Immutable mapping built on a persistent Hash Array Mapped Trie.

HAMT Design:
- 64-bit key hashes consumed 5 bits per level (splitmix64-mixed)
- Bitmap nodes for sparse levels, array nodes once a level holds 17+ slots
- Collision nodes for keys whose full hashes are equal
- Path copying: an update copies O(log32 N) nodes, siblings are shared
- Mutation ids let a MapMutation edit its own fresh copies in place

Package Structure:
    frozenmap/
    ├── __init__.py      # Package exports (this file)
    ├── bits.py          # Hash folding and bitmap arithmetic
    ├── nodes.py         # Leaf, BitmapNode, ArrayNode, CollisionNode
    ├── map.py           # FrozenMap and its views
    ├── mutation.py      # MapMutation copy-on-write view
    ├── errors.py        # Exception hierarchy
    └── diagnostics.py   # Stats, validation, sharing measurement, dumps
"""

from frozenmap.errors import (
    FrozenMapError, KeyNotFoundError, MutationClosedError, UnhashableValueError,
)
from frozenmap.mutation import MapMutation
from frozenmap.map import FrozenMap

__all__ = [
    'FrozenMap',
    'MapMutation',
    'FrozenMapError',
    'KeyNotFoundError',
    'MutationClosedError',
    'UnhashableValueError',
]
