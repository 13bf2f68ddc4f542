"""
Context Stack Package

Dynamically scoped context variables whose storage is a stack of Context
layers, each layer a FrozenMap from variable to value.

Design:
- Explicit stacks: every read and write names the ContextStack it acts on;
  StackRegistry maps logical-thread identities to their stacks
- run() isolates a task (stack replaced by one layer), push() nests a
  scope (layer added on top); both restore the stack unconditionally
- In-use flag on each layer rejects activating it twice (ReentrancyError)
- Version-stamped single-slot cache on each ContextVar
- ScopedGenerator pushes a generator's own layer for every resume

Package Structure:
    ctxstack/
    ├── __init__.py      # Package exports (this file)
    ├── context.py       # Context, ContextVar, Token, MISSING
    ├── stack.py         # ContextStack
    ├── registry.py      # StackRegistry
    ├── generators.py    # ScopedGenerator, scoped()
    └── errors.py        # ContextError, ReentrancyError, StaleTokenError
"""

from ctxstack.context import MISSING, Context, ContextVar, Token
from ctxstack.errors import ContextError, ReentrancyError, StaleTokenError
from ctxstack.stack import ContextStack
from ctxstack.registry import StackRegistry
from ctxstack.generators import ScopedGenerator, scoped

__all__ = [
    'MISSING',
    'Context',
    'ContextVar',
    'Token',
    'ContextStack',
    'StackRegistry',
    'ScopedGenerator',
    'scoped',
    'ContextError',
    'ReentrancyError',
    'StaleTokenError',
]
