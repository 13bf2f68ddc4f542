"""
Pytest configuration and fixtures for frozenscope tests.

Provides reusable fixtures for:
- Keys with controlled hashes (forced collisions)
- Prebuilt maps large enough to use every node kind
- Fresh context stacks and registries
- Restoring global trace settings after each test
"""

import io
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import scope_trace
from ctxstack import ContextStack, StackRegistry
from frozenmap import FrozenMap


class FixedHashKey:
    """Key whose hash is chosen by the test; equality is by name."""

    def __init__(self, name, h):
        self.name = name
        self.h = h

    def __hash__(self):
        return self.h

    def __eq__(self, other):
        return isinstance(other, FixedHashKey) and self.name == other.name

    def __repr__(self):
        return f"FixedHashKey({self.name!r}, {self.h})"


@pytest.fixture
def colliding_keys():
    """
    Fixture that returns a function making keys that all share one hash.

    Usage:
        a, b, c = colliding_keys(3)
        assert hash(a) == hash(c)
    """
    def _make(count: int, h: int = 42, prefix: str = "k"):
        return [FixedHashKey(f"{prefix}{i}", h) for i in range(count)]
    return _make


@pytest.fixture
def big_map():
    """Map of 0..1999 -> str(i), deep enough for array nodes at the root."""
    return FrozenMap((i, str(i)) for i in range(2000))


@pytest.fixture
def stack():
    s = ContextStack()
    yield s
    if not s.closed and s.depth == 1:
        s.close()


@pytest.fixture
def registry():
    return StackRegistry()


@pytest.fixture(autouse=True)
def reset_trace():
    """Every test starts with tracing off and leaves it that way."""
    previous_level = scope_trace.set_trace_level(scope_trace.TRACE_OFF)
    previous_stream = scope_trace.set_trace_stream(None)
    yield
    scope_trace.set_trace_level(previous_level)
    scope_trace.set_trace_stream(previous_stream)


@pytest.fixture
def trace_output():
    """
    Fixture that captures trace lines at a given level.

    Usage:
        out = trace_output(2)
        ...
        assert "[SCOPE:PUSH]" in out.getvalue()
    """
    def _capture(level: int) -> io.StringIO:
        buf = io.StringIO()
        scope_trace.set_trace_stream(buf)
        scope_trace.set_trace_level(level)
        return buf
    return _capture
