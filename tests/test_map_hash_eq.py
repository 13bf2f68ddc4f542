"""
Tests for FrozenMap equality, hashing and pickling.
"""

import pickle
from collections import OrderedDict

import pytest

from frozenmap import FrozenMap, UnhashableValueError


class TestEquality:
    """Equality depends on contents only."""

    def test_insertion_order_irrelevant(self):
        a = FrozenMap((i, i) for i in range(300))
        b = FrozenMap((i, i) for i in reversed(range(300)))
        assert a == b

    def test_different_history_same_contents(self):
        a = FrozenMap((i, i) for i in range(100))
        b = FrozenMap((i, i) for i in range(200))
        for i in range(100, 200):
            b = b.excluding(i)
        assert a == b

    def test_value_difference(self):
        assert FrozenMap(a=1) != FrozenMap(a=2)

    def test_key_difference(self):
        assert FrozenMap(a=1) != FrozenMap(b=1)

    def test_length_difference(self):
        assert FrozenMap(a=1) != FrozenMap(a=1, b=2)

    def test_equal_to_dict(self):
        m = FrozenMap(a=1, b=2)
        assert m == {"a": 1, "b": 2}
        assert {"b": 2, "a": 1} == m
        assert m == OrderedDict([("b", 2), ("a", 1)])
        assert m != {"a": 1}

    def test_not_equal_to_non_mapping(self):
        assert FrozenMap() != []
        assert FrozenMap(a=1) != [("a", 1)]

    def test_equal_values_not_identical(self):
        assert FrozenMap(a=[1, 2]) == FrozenMap(a=[1, 2])


class TestHashing:
    """Hashes agree with equality and are cached."""

    def test_equal_maps_equal_hashes(self):
        a = FrozenMap((str(i), i) for i in range(500))
        b = FrozenMap((str(i), i) for i in reversed(range(500)))
        assert hash(a) == hash(b)

    def test_empty_hash_stable(self):
        assert hash(FrozenMap()) == hash(FrozenMap())

    def test_usable_as_dict_key(self):
        d = {FrozenMap(a=1): "first"}
        assert d[FrozenMap(a=1)] == "first"

    def test_usable_in_set(self):
        s = {FrozenMap(a=1), FrozenMap(a=1), FrozenMap(a=2)}
        assert len(s) == 2

    def test_swapped_values_differ(self):
        """Moving values between keys must change the hash."""
        assert hash(FrozenMap(a=1, b=2)) != hash(FrozenMap(a=2, b=1))

    def test_hash_cached(self):
        m = FrozenMap(a=1)
        h = hash(m)
        assert m._hash == h
        assert hash(m) == h

    def test_unhashable_value(self):
        m = FrozenMap(a=[1])
        with pytest.raises(UnhashableValueError, match="'a'"):
            hash(m)

    def test_unhashable_value_is_type_error(self):
        with pytest.raises(TypeError):
            hash(FrozenMap(a={}))

    def test_nested_maps(self):
        inner = FrozenMap(x=1)
        outer = FrozenMap(inner=inner)
        assert hash(outer) == hash(FrozenMap(inner=FrozenMap(x=1)))
        assert FrozenMap({inner: "key"})[FrozenMap(x=1)] == "key"


class TestPickle:
    """Pickling rebuilds an equal map."""

    def test_roundtrip(self, big_map):
        restored = pickle.loads(pickle.dumps(big_map))
        assert restored == big_map
        assert type(restored) is FrozenMap
        assert restored is not big_map

    def test_empty(self):
        assert pickle.loads(pickle.dumps(FrozenMap())) == FrozenMap()
