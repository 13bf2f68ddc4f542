"""
ContextStack: the chain of Context layers active for one logical thread.

Layers are kept top first. Lookups scan from the top and the first layer
binding the variable wins; writes only ever touch the top layer.

Transitions:
    run(ctx, fn)   - whole stack replaced by [ctx] for the call (task boundary)
    push(ctx, fn)  - ctx placed on top of the current layers for the call
                     (resuming a nested lazy computation such as a generator)

Both claim the layer's in-use flag first and restore the previous layers in a
finally block, whatever the body does.

Lookup cache: each stack state has a version drawn from one process-wide
counter. A ContextVar remembers the last (version, value) it resolved, so a
hit is only possible for the exact state it was computed in, on whichever
thread asks.
"""

import itertools
from contextlib import contextmanager
from typing import Iterator, Tuple

from frozenmap import KeyNotFoundError

import scope_trace
from ctxstack.context import MISSING, Context, ContextVar, Token
from ctxstack.errors import ContextError, ReentrancyError, StaleTokenError

_versions = itertools.count(1)


class ContextStack:
    """Layered variable lookup for one logical thread of control."""

    __slots__ = ('_layers', '_version', '_use_cache', '__weakref__')

    def __init__(self, context: Context = None, *, use_cache: bool = True):
        if context is None:
            context = Context()
        elif context._in_use:
            raise ReentrancyError(f"{context!r} is already active on another stack")
        context._in_use = True
        self._layers: Tuple[Context, ...] = (context,)
        self._use_cache = use_cache
        self._version = next(_versions)

    def _changed(self):
        self._version = next(_versions)

    def _require_open(self):
        if not self._layers:
            raise ContextError("context stack has been closed")

    @property
    def layers(self) -> Tuple[Context, ...]:
        return self._layers

    @property
    def top(self) -> Context:
        self._require_open()
        return self._layers[0]

    @property
    def depth(self) -> int:
        return len(self._layers)

    @property
    def version(self) -> int:
        return self._version

    @property
    def closed(self) -> bool:
        return not self._layers

    # ============================================================
    # Variable access
    # ============================================================

    def get(self, var: ContextVar, default=MISSING):
        if not isinstance(var, ContextVar):
            raise TypeError(f"a ContextVar was expected, got {var!r}")
        self._require_open()

        cached = var._cache
        if self._use_cache and cached is not None and cached[0] == self._version:
            value = cached[1]
        else:
            value = MISSING
            for layer in self._layers:
                value = layer._data.get(var, MISSING)
                if value is not MISSING:
                    break
            if self._use_cache:
                var._cache = (self._version, value)
            if scope_trace.enabled(scope_trace.TRACE_VERBOSE):
                scope_trace.trace(scope_trace.TRACE_VERBOSE, "CACHE",
                                  f"miss for {var.name!r} at version {self._version}")

        if value is not MISSING:
            return value
        if default is not MISSING:
            return default
        if var._default is not MISSING:
            return var._default
        raise KeyNotFoundError(var)

    def set(self, var: ContextVar, value) -> Token:
        """Bind `var` in the top layer, returns a Token undoing exactly this write."""
        if not isinstance(var, ContextVar):
            raise TypeError(f"a ContextVar was expected, got {var!r}")
        if value is MISSING:
            raise ValueError("MISSING cannot be bound to a context variable")
        top = self.top
        data = top._data
        old_value = data.get(var, MISSING)
        top._data = data.including(var, value)
        self._changed()
        return Token(top, var, old_value)

    def reset(self, token: Token):
        """Put back the binding `token` captured.

        The token must be unused and must have been issued against the layer
        that is on top of this stack now.
        """
        if token._used:
            raise StaleTokenError(f"{token!r} has already been used once")
        top = self.top
        if token._context is not top:
            raise StaleTokenError(f"{token!r} was created in a different context layer")

        var = token._var
        data = top._data
        if token._old_value is MISSING:
            if var in data:
                data = data.excluding(var)
        else:
            data = data.including(var, token._old_value)
        top._data = data
        token._used = True
        self._changed()

    # ============================================================
    # Scope transitions
    # ============================================================

    def _enter(self, context: Context, layers: Tuple[Context, ...], tag: str) -> Tuple[Context, ...]:
        self._require_open()
        if context._in_use:
            scope_trace.trace(scope_trace.TRACE_TRANSITIONS, "REENTRY",
                              f"{tag.lower()} rejected for {context!r}")
            raise ReentrancyError(f"cannot {tag.lower()} {context!r}: it is already entered")
        context._in_use = True
        saved = self._layers
        self._layers = layers
        self._changed()
        scope_trace.trace(scope_trace.TRACE_TRANSITIONS, tag,
                          f"enter, depth {len(saved)} -> {len(layers)}")
        return saved

    def _leave(self, context: Context, saved: Tuple[Context, ...], tag: str):
        self._layers = saved
        context._in_use = False
        self._changed()
        scope_trace.trace(scope_trace.TRACE_TRANSITIONS, tag, f"exit, depth {len(saved)}")

    def run(self, context: Context, fn, *args, **kwargs):
        """Call fn with the stack replaced by the single layer `context`."""
        saved = self._enter(context, (context,), "RUN")
        try:
            return fn(*args, **kwargs)
        finally:
            self._leave(context, saved, "RUN")

    def push(self, context: Context, fn, *args, **kwargs):
        """Call fn with `context` on top of the current layers."""
        saved = self._enter(context, (context,) + self._layers, "PUSH")
        try:
            return fn(*args, **kwargs)
        finally:
            self._leave(context, saved, "PUSH")

    @contextmanager
    def entered(self, context: Context) -> Iterator[Context]:
        """Block form of run()."""
        saved = self._enter(context, (context,), "RUN")
        try:
            yield context
        finally:
            self._leave(context, saved, "RUN")

    @contextmanager
    def pushed(self, context: Context) -> Iterator[Context]:
        """Block form of push()."""
        saved = self._enter(context, (context,) + self._layers, "PUSH")
        try:
            yield context
        finally:
            self._leave(context, saved, "PUSH")

    # ============================================================
    # Snapshots and lifecycle
    # ============================================================

    def copy_context(self) -> Context:
        """Flatten all layers into a fresh unused Context, upper layers winning."""
        self._require_open()
        layers = self._layers
        if len(layers) == 1:
            return Context._from_map(layers[0]._data)
        merged = layers[-1]._data
        for layer in reversed(layers[:-1]):
            merged = merged.union(layer._data)
        return Context._from_map(merged)

    def close(self):
        """Release the base layer once the owning logical thread is done."""
        if not self._layers:
            return
        if len(self._layers) > 1:
            raise ContextError(f"cannot close a stack with {len(self._layers)} active layers")
        self._layers[0]._in_use = False
        self._layers = ()
        self._changed()

    def __repr__(self):
        if not self._layers:
            return "<ContextStack closed>"
        return f"<ContextStack depth={len(self._layers)} version={self._version}>"
