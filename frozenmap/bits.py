"""
Hash chunking helpers for the HAMT.

Every key hash is folded to an unsigned 64-bit integer and consumed five bits
per trie level, lowest bits first:

    shift 0  -> bits 0..4    (root)
    shift 5  -> bits 5..9
    ...
    shift 60 -> bits 60..63  (last level, 16 possible slots)

Keys whose full 64-bit hashes are equal end up in a CollisionNode.
"""

BITS_PER_LEVEL = 5
BRANCH_FACTOR = 1 << BITS_PER_LEVEL
CHUNK_MASK = BRANCH_FACTOR - 1
HASH_BITS = 64
HASH_MASK = (1 << HASH_BITS) - 1
MAX_SHIFT = HASH_BITS - (HASH_BITS % BITS_PER_LEVEL or BITS_PER_LEVEL)

# A bitmap node holding this many children turns into an array node on the
# next insert; an array node falling below it packs back into a bitmap node.
ARRAY_NODE_THRESHOLD = 16


def mix64(x: int) -> int:
    """splitmix64 finalizer, spreads sequential integers across all bits."""
    x = (x ^ (x >> 30)) * 0xBF58476D1CE4E5B9 & HASH_MASK
    x = (x ^ (x >> 27)) * 0x94D049BB133111EB & HASH_MASK
    return x ^ (x >> 31)


def hash_key(key) -> int:
    """Full trie hash of a key. Raises TypeError for unhashable keys."""
    return mix64(hash(key) & HASH_MASK)


def chunk(h: int, shift: int) -> int:
    """Slot index selected by the hash at the level starting at `shift`."""
    return (h >> shift) & CHUNK_MASK


def bitpos(h: int, shift: int) -> int:
    return 1 << ((h >> shift) & CHUNK_MASK)


def popcount(x: int) -> int:
    return x.bit_count()


def bitindex(bitmap: int, bit: int) -> int:
    """Compacted child index of `bit` within `bitmap`."""
    return (bitmap & (bit - 1)).bit_count()
