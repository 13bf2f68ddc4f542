"""
Frozenscope trace output

Levelled diagnostic output shared by the frozenmap and ctxstack packages.
Lines carry a `[SCOPE:<TAG>]` prefix (`[SCOPE:PUSH] ...`) and go to stderr
unless another stream is installed.

Levels:
    0 - off (default)
    1 - lifecycle: stack registration, thread spawn/exit
    2 - stack transitions: run/push enter and exit, rejected reentry
    3 - verbose: lookup cache misses, mutation sessions
"""

import sys
from typing import Optional, TextIO

TRACE_OFF = 0
TRACE_LIFECYCLE = 1
TRACE_TRANSITIONS = 2
TRACE_VERBOSE = 3

_trace_level = TRACE_OFF
_trace_stream: Optional[TextIO] = None


def set_trace_level(level: int) -> int:
    """Set trace verbosity, returns the previous level."""
    global _trace_level
    if not TRACE_OFF <= level <= TRACE_VERBOSE:
        raise ValueError(f"trace level must be between {TRACE_OFF} and {TRACE_VERBOSE}, got {level}")
    previous = _trace_level
    _trace_level = level
    return previous


def get_trace_level() -> int:
    return _trace_level


def set_trace_stream(stream: Optional[TextIO]) -> Optional[TextIO]:
    """Redirect trace output (None restores stderr), returns the previous stream."""
    global _trace_stream
    previous = _trace_stream
    _trace_stream = stream
    return previous


def enabled(level: int) -> bool:
    return _trace_level >= level


def trace(level: int, tag: str, message: str):
    """Write `[SCOPE:<tag>] message` if the current level is at least `level`."""
    if _trace_level < level:
        return
    stream = _trace_stream if _trace_stream is not None else sys.stderr
    print(f"[SCOPE:{tag}] {message}", file=stream)
