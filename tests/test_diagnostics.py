"""
Tests for trie diagnostics: stats, validation, sharing and dumps.
"""

import io

from frozenmap import FrozenMap
from frozenmap.diagnostics import (
    TrieStats, collect_stats, dump, fresh_nodes, iter_nodes, shared_nodes, validate,
)
from frozenmap.nodes import BitmapNode, Leaf, NodeKind


class TestStats:
    """collect_stats and TrieStats"""

    def test_empty_map(self):
        stats = collect_stats(FrozenMap())
        assert stats.entries == 0
        assert stats.depth == 0
        assert stats.nodes[NodeKind.BITMAP] == 1
        assert stats.nodes[NodeKind.LEAF] == 0

    def test_leaf_count_matches(self, big_map):
        stats = collect_stats(big_map)
        assert stats.entries == 2000
        assert stats.nodes[NodeKind.LEAF] == 2000
        assert stats.depth >= 2

    def test_to_lines(self):
        lines = TrieStats(entries=3, depth=1).to_lines()
        assert lines[0] == "entries: 3"
        assert "leaf_nodes: 0" in lines
        assert lines[-1] == "max_collision: 0"


class TestIterNodes:
    """Walking the trie."""

    def test_root_first(self, big_map):
        depth, slot, node = next(iter_nodes(big_map))
        assert depth == 0
        assert slot is None
        assert node is big_map._root

    def test_leaves_found(self):
        m = FrozenMap(a=1, b=2, c=3)
        keys = {node.key for _d, _s, node in iter_nodes(m) if type(node) is Leaf}
        assert keys == {"a", "b", "c"}


class TestValidate:
    """validate() reports broken invariants."""

    def test_healthy_maps(self, big_map, colliding_keys):
        assert validate(big_map) == []
        assert validate(FrozenMap((k, 1) for k in colliding_keys(3))) == []

    def test_wrong_count(self):
        m = FrozenMap._new(FrozenMap(a=1)._root, 2)
        problems = validate(m)
        assert any("reports 2 entries" in p for p in problems)

    def test_bad_bitmap(self):
        m = FrozenMap(a=1, b=2)
        broken = FrozenMap._new(BitmapNode(m._root.bitmap, m._root.children[:1]), 2)
        problems = validate(broken)
        assert any("does not match" in p for p in problems)

    def test_leaf_off_its_path(self):
        m = FrozenMap(a=1)
        leaf = m._root.children[0]
        wrong_bit = (m._root.bitmap << 1) & 0xFFFFFFFF or 1
        broken = FrozenMap._new(BitmapNode(wrong_bit, [leaf]), 1)
        assert any("hash path" in p for p in validate(broken))


class TestSharing:
    """shared_nodes and fresh_nodes"""

    def test_same_map_fully_shared(self, big_map):
        assert fresh_nodes(big_map, big_map) == []
        total = sum(1 for _d, _s, n in iter_nodes(big_map) if type(n) is not Leaf)
        assert shared_nodes(big_map, big_map) == total

    def test_independent_maps_share_nothing(self):
        a = FrozenMap((i, i) for i in range(100))
        b = FrozenMap((i, i) for i in range(100))
        assert shared_nodes(a, b) == 0

    def test_update_shares_siblings(self, big_map):
        m2 = big_map.including(0, "changed")
        assert shared_nodes(big_map, m2) > len(fresh_nodes(big_map, m2))


class TestDump:
    """dump() output"""

    def test_dump_lines(self):
        out = io.StringIO()
        dump(FrozenMap(a=1), file=out)
        lines = out.getvalue().splitlines()
        assert lines[0] == "FrozenMap with 1 entries"
        assert lines[1].startswith("[root] BitmapNode(")
        assert lines[2].strip().endswith("'a': 1")
