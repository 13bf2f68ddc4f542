"""
Frozenmap Diagnostics Module

Debugging helpers for inspecting the trie behind a FrozenMap:
- iter_nodes: Walk every node with its depth and slot
- collect_stats: Node counts per kind, depth, collision lengths
- validate: Check structural invariants, returns a list of problems
- shared_nodes / fresh_nodes: Measure structural sharing between two maps
- dump: Print the trie as an indented tree
"""

import sys
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, TextIO, Tuple

from frozenmap.bits import (
    ARRAY_NODE_THRESHOLD, BITS_PER_LEVEL, BRANCH_FACTOR, HASH_BITS,
    hash_key, popcount,
)
from frozenmap.map import FrozenMap
from frozenmap.nodes import ArrayNode, BitmapNode, CollisionNode, Leaf, NodeKind


@dataclass
class TrieStats:
    """Shape summary of one map's trie."""
    entries: int = 0
    depth: int = 0
    nodes: Dict[NodeKind, int] = field(default_factory=lambda: {kind: 0 for kind in NodeKind})
    max_collision: int = 0

    def to_lines(self) -> List[str]:
        lines = [
            f"entries: {self.entries}",
            f"depth: {self.depth}",
        ]
        for kind in NodeKind:
            lines.append(f"{kind.value}_nodes: {self.nodes[kind]}")
        lines.append(f"max_collision: {self.max_collision}")
        return lines


def _children(node) -> Iterator[Tuple[Optional[int], object]]:
    if type(node) is BitmapNode:
        j = 0
        for slot in range(BRANCH_FACTOR):
            if (node.bitmap >> slot) & 1:
                yield slot, node.children[j]
                j += 1
    elif type(node) is ArrayNode:
        for slot, child in enumerate(node.children):
            if child is not None:
                yield slot, child
    elif type(node) is CollisionNode:
        for leaf in node.leaves:
            yield None, leaf


def iter_nodes(m: FrozenMap) -> Iterator[Tuple[int, Optional[int], object]]:
    """Yield (depth, slot, node) for every node, root first. Root has depth 0."""
    stack = [(0, None, m._root)]
    while stack:
        depth, slot, node = stack.pop()
        yield depth, slot, node
        children = list(_children(node))
        for child_slot, child in reversed(children):
            stack.append((depth + 1, child_slot, child))


def collect_stats(m: FrozenMap) -> TrieStats:
    stats = TrieStats(entries=len(m))
    for depth, _slot, node in iter_nodes(m):
        stats.nodes[node.kind] += 1
        if type(node) is Leaf:
            stats.depth = max(stats.depth, depth)
        elif type(node) is CollisionNode:
            stats.max_collision = max(stats.max_collision, len(node.leaves))
    return stats


def validate(m: FrozenMap) -> List[str]:
    """Check trie invariants. An empty list means the map is healthy."""
    errors: List[str] = []
    leaf_count = 0

    # (node, shift of the level the node indexes, hash prefix, prefix bits)
    pending = [(m._root, 0, 0, 0)]
    root = m._root
    if type(root) is not BitmapNode and type(root) is not ArrayNode:
        errors.append(f"root must be a branch node, got {root.kind.value}")

    while pending:
        node, shift, prefix, prefix_bits = pending.pop()
        prefix_mask = (1 << prefix_bits) - 1

        if type(node) is Leaf:
            leaf_count += 1
            if node.hash != hash_key(node.key):
                errors.append(f"leaf {node.key!r} stores a stale hash")
            elif node.hash & prefix_mask != prefix:
                errors.append(f"leaf {node.key!r} is not on its hash path")
            continue

        if type(node) is CollisionNode:
            if len(node.leaves) < 2:
                errors.append(f"collision node with {len(node.leaves)} leaves")
            if node.hash & prefix_mask != prefix:
                errors.append("collision node is not on its hash path")
            seen = []
            for leaf in node.leaves:
                leaf_count += 1
                if leaf.hash != node.hash:
                    errors.append(f"leaf {leaf.key!r} hash differs from its collision node")
                if any(leaf.key == other for other in seen):
                    errors.append(f"duplicate key {leaf.key!r} in collision node")
                seen.append(leaf.key)
            continue

        if shift >= HASH_BITS:
            errors.append(f"branch node below the last hash level (shift {shift})")
            continue

        if type(node) is BitmapNode:
            if popcount(node.bitmap) != len(node.children):
                errors.append(
                    f"bitmap {node.bitmap:#010x} does not match {len(node.children)} children")
                continue
            if len(node.children) > ARRAY_NODE_THRESHOLD:
                errors.append(f"bitmap node holds {len(node.children)} children")
            if not node.children and node is not root:
                errors.append("empty bitmap node below the root")
        elif type(node) is ArrayNode:
            populated = sum(1 for child in node.children if child is not None)
            if len(node.children) != BRANCH_FACTOR:
                errors.append(f"array node has {len(node.children)} slots")
            if populated != node.count:
                errors.append(f"array node count {node.count} but {populated} populated slots")
            if populated < ARRAY_NODE_THRESHOLD:
                errors.append(f"array node with only {populated} children")

        next_bits = min(shift + BITS_PER_LEVEL, HASH_BITS)
        for slot, child in _children(node):
            pending.append((child, shift + BITS_PER_LEVEL, prefix | (slot << shift), next_bits))

    if leaf_count != len(m):
        errors.append(f"map reports {len(m)} entries but trie holds {leaf_count}")
    return errors


def _branch_ids(m: FrozenMap) -> Dict[int, object]:
    return {
        id(node): node
        for _depth, _slot, node in iter_nodes(m)
        if type(node) is not Leaf
    }


def shared_nodes(a: FrozenMap, b: FrozenMap) -> int:
    """Number of branch nodes of `b` that are the very same objects in `a`."""
    seen = _branch_ids(a)
    return sum(1 for node_id in _branch_ids(b) if node_id in seen)


def fresh_nodes(a: FrozenMap, b: FrozenMap) -> List[object]:
    """Branch nodes of `b` that `a` does not share."""
    seen = _branch_ids(a)
    return [node for node_id, node in _branch_ids(b).items() if node_id not in seen]


def dump(m: FrozenMap, file: Optional[TextIO] = None):
    """Print the trie, one node per line, indented by depth."""
    out = file if file is not None else sys.stdout
    print(f"FrozenMap with {len(m)} entries", file=out)
    for depth, slot, node in iter_nodes(m):
        label = "root" if slot is None and depth == 0 else ("-" if slot is None else f"{slot:2d}")
        if type(node) is Leaf:
            text = f"{node.key!r}: {node.value!r}"
        else:
            text = repr(node)
        print(f"{'  ' * depth}[{label}] {text}", file=out)
