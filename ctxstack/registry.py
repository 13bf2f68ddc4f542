"""
Stack Registry

Maps each logical thread of control to the one ContextStack it owns.

Registry Design:
- Identity comes from a callable (threading.get_ident by default); a task
  scheduler can supply its own task-id function instead
- A stack is created on first use with a single empty layer
- The registry lock only guards the identity table; a stack itself is only
  ever touched by the logical thread that owns it
- spawn() starts a thread that begins with a snapshot of the caller's
  flattened context and unregisters its stack when it finishes
"""

import threading
from typing import Callable, Dict, Hashable, Optional

import scope_trace
from ctxstack.context import Context
from ctxstack.errors import ContextError, ReentrancyError
from ctxstack.stack import ContextStack


class StackRegistry:
    """One ContextStack per logical-thread identity."""

    def __init__(self, identify: Callable[[], Hashable] = threading.get_ident, *,
                 use_cache: bool = True):
        self._identify = identify
        self._use_cache = use_cache
        self._stacks: Dict[Hashable, ContextStack] = {}
        self._lock = threading.Lock()

    def current(self) -> ContextStack:
        """Stack of the calling logical thread, registered on first use."""
        key = self._identify()
        stack = self._stacks.get(key)
        if stack is None:
            stack = self.register(key)
        return stack

    def register(self, key: Optional[Hashable] = None,
                 context: Optional[Context] = None) -> ContextStack:
        if key is None:
            key = self._identify()
        with self._lock:
            if key in self._stacks:
                raise ContextError(f"logical thread {key!r} already has a context stack")
            stack = ContextStack(context, use_cache=self._use_cache)
            self._stacks[key] = stack
            count = len(self._stacks)
        scope_trace.trace(scope_trace.TRACE_LIFECYCLE, "REGISTER",
                          f"{key!r} ({count} registered)")
        return stack

    def unregister(self, key: Optional[Hashable] = None) -> ContextStack:
        """Drop the stack of `key` (default: caller) and release its base layer."""
        if key is None:
            key = self._identify()
        with self._lock:
            stack = self._stacks.get(key)
            if stack is None:
                raise ContextError(f"logical thread {key!r} has no context stack")
            stack.close()
            del self._stacks[key]
            count = len(self._stacks)
        scope_trace.trace(scope_trace.TRACE_LIFECYCLE, "UNREGISTER",
                          f"{key!r} ({count} registered)")
        return stack

    def __contains__(self, key) -> bool:
        return key in self._stacks

    def __len__(self) -> int:
        return len(self._stacks)

    def spawn(self, fn, *args, context: Optional[Context] = None,
              name: Optional[str] = None, daemon: Optional[bool] = None,
              **kwargs) -> threading.Thread:
        """Run fn in a new thread whose stack starts from `context`.

        Without an explicit context the thread gets copy_context() of the
        caller's stack, so it reads the caller's current bindings and its
        own writes stay private. Only meaningful for thread-keyed registries.
        """
        if context is None:
            context = self.current().copy_context()
        elif context.in_use:
            raise ReentrancyError(f"{context!r} is already active on another stack")

        def _target():
            self.register(context=context)
            try:
                fn(*args, **kwargs)
            finally:
                self.unregister()

        thread = threading.Thread(target=_target, name=name, daemon=daemon)
        scope_trace.trace(scope_trace.TRACE_LIFECYCLE, "SPAWN", f"thread {thread.name}")
        thread.start()
        return thread
