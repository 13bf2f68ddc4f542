"""
Frozenmap Errors

Exception hierarchy for the persistent map and its mutation view.
"""


class FrozenMapError(Exception):
    """Base exception for frozenmap errors"""
    pass


class KeyNotFoundError(FrozenMapError, KeyError):
    """Key is absent from the map (remove of a missing key, required lookup)"""
    pass


class MutationClosedError(FrozenMapError, ValueError):
    """Operation attempted on a finished or closed MapMutation"""
    pass


class UnhashableValueError(FrozenMapError, TypeError):
    """Map cannot be hashed because it holds an unhashable value"""
    pass
