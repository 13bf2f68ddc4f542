"""
Context layers, context variables and restoration tokens.

A Context is one scope layer: a FrozenMap of ContextVar -> value plus a flag
saying whether some ContextStack currently has it active. Writes replace the
layer's map with a new persistent version, so copying a layer is O(1).

ContextVar objects are only identities with a name and optional default.
Reads and writes always go through an explicit ContextStack.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Iterator

from frozenmap import FrozenMap

if TYPE_CHECKING:
    from ctxstack.stack import ContextStack


class _MissingType:
    """Marker for "no value": absent defaults and absent prior bindings."""

    __slots__ = ()

    def __repr__(self):
        return "<MISSING>"

    def __reduce__(self):
        return "MISSING"


MISSING = _MissingType()


class Context(Mapping):
    """Single scope layer of variable bindings.

    Read-only from the outside: bindings change only through
    ContextStack.set/reset while the layer is on top of a stack.
    """

    __slots__ = ('_data', '_in_use')

    def __init__(self, bindings=None):
        if bindings is None:
            data = FrozenMap()
        elif isinstance(bindings, Context):
            data = bindings._data
        else:
            data = FrozenMap(bindings)
            for var in data:
                if not isinstance(var, ContextVar):
                    raise TypeError(f"context keys must be ContextVar objects, got {var!r}")
        self._data = data
        self._in_use = False

    @classmethod
    def _from_map(cls, data: FrozenMap) -> 'Context':
        ctx = cls.__new__(cls)
        ctx._data = data
        ctx._in_use = False
        return ctx

    @property
    def in_use(self) -> bool:
        return self._in_use

    @property
    def bindings(self) -> FrozenMap:
        return self._data

    def __getitem__(self, var: 'ContextVar'):
        if not isinstance(var, ContextVar):
            raise TypeError(f"a ContextVar key was expected, got {var!r}")
        return self._data[var]

    def get(self, var: 'ContextVar', default=None):
        if not isinstance(var, ContextVar):
            raise TypeError(f"a ContextVar key was expected, got {var!r}")
        return self._data.get(var, default)

    def __contains__(self, var) -> bool:
        return isinstance(var, ContextVar) and var in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator['ContextVar']:
        return iter(self._data)

    def copy(self) -> 'Context':
        """Independent, unused layer with the same bindings."""
        return Context._from_map(self._data)

    def __repr__(self):
        state = " in use" if self._in_use else ""
        names = ", ".join(var.name for var in self._data)
        return f"<Context{state} [{names}]>"


class ContextVar:
    """Dynamically scoped variable.

    get() falls back to the explicit default, then to the variable's own
    default, and raises KeyNotFoundError when neither exists.
    """

    __slots__ = ('_name', '_default', '_cache', '__weakref__')

    def __init__(self, name: str, *, default=MISSING):
        if not isinstance(name, str):
            raise TypeError("context variable name must be a str")
        self._name = name
        self._default = default
        # (stack version, value or MISSING); one tuple so readers never
        # see a version paired with another stack's value
        self._cache = None

    def __init_subclass__(cls, **kwargs):
        raise TypeError("type 'ContextVar' is not an acceptable base type")

    @property
    def name(self) -> str:
        return self._name

    @property
    def default(self):
        return self._default

    def get(self, stack: 'ContextStack', default=MISSING):
        return stack.get(self, default)

    def set(self, stack: 'ContextStack', value) -> 'Token':
        return stack.set(self, value)

    def reset(self, stack: 'ContextStack', token: 'Token'):
        if token.var is not self:
            raise ValueError(f"{token!r} was created by a different ContextVar")
        stack.reset(token)

    def __repr__(self):
        default = "" if self._default is MISSING else f" default={self._default!r}"
        return f"<ContextVar name={self._name!r}{default} at {id(self):#x}>"


class Token:
    """Restores a variable in the layer it was set in. Usable once."""

    __slots__ = ('_context', '_var', '_old_value', '_used')

    MISSING = MISSING

    def __init__(self, context: Context, var: ContextVar, old_value):
        self._context = context
        self._var = var
        self._old_value = old_value
        self._used = False

    @property
    def var(self) -> ContextVar:
        return self._var

    @property
    def old_value(self):
        return self._old_value

    @property
    def used(self) -> bool:
        return self._used

    def __repr__(self):
        used = " used" if self._used else ""
        return f"<Token{used} var={self._var!r} at {id(self):#x}>"
