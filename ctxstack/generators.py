"""
Generator-sensitive context scoping.

A ScopedGenerator owns a Context and pushes it onto the resuming thread's
stack for each resume (send, throw, close, and so next), popping it again
before control goes back to the caller. Writes made by the generator body
land in its own layer and survive across suspensions; reads still see
whatever the caller has bound at the moment of each resume.

    @scoped(registry)
    def numbered(items):
        for i, item in enumerate(items):
            counter.set(registry.current(), i)
            yield item
"""

import functools
from collections.abc import Generator
from typing import Union

import scope_trace
from ctxstack.context import Context
from ctxstack.errors import ContextError
from ctxstack.registry import StackRegistry
from ctxstack.stack import ContextStack

StackTarget = Union[ContextStack, StackRegistry]


class ScopedGenerator(Generator):
    """Wraps a generator so every resume runs inside its own Context layer."""

    def __init__(self, gen: Generator, target: StackTarget, context: Context = None):
        self._gen = gen
        self._target = target
        self._context = context if context is not None else Context()

    @property
    def context(self) -> Context:
        return self._context

    @property
    def gi_running(self) -> bool:
        return self._gen.gi_running

    def _stack(self) -> ContextStack:
        # Resolved per resume: the generator follows the thread that resumes it
        if isinstance(self._target, StackRegistry):
            return self._target.current()
        return self._target

    def send(self, value):
        return self._stack().push(self._context, self._gen.send, value)

    def throw(self, typ, val=None, tb=None):
        if val is None:
            exc = typ() if isinstance(typ, type) else typ
        elif isinstance(val, BaseException):
            exc = val
        elif isinstance(val, tuple):
            exc = typ(*val)
        else:
            exc = typ(val)
        if tb is not None:
            exc = exc.with_traceback(tb)
        return self._stack().push(self._context, self._gen.throw, exc)

    def close(self):
        self._stack().push(self._context, self._gen.close)

    def __del__(self):
        # A suspended body dropped without close() still runs its cleanup in its own layer
        gen = getattr(self, "_gen", None)
        if gen is None or getattr(gen, "gi_frame", None) is None:
            return
        try:
            self.close()
        except ContextError as e:
            scope_trace.trace(scope_trace.TRACE_LIFECYCLE, "FINALIZE",
                              f"{self!r} closed without its layer: {e}")

    def __repr__(self):
        return f"<ScopedGenerator {self._gen!r}>"


def scoped(target: StackTarget):
    """Decorator: calling the generator function returns a ScopedGenerator."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return ScopedGenerator(func(*args, **kwargs), target)
        return wrapper
    return decorator
