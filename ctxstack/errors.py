"""
Context Stack Errors

Lookups of unbound variables raise frozenmap.KeyNotFoundError (a LookupError).
"""


class ContextError(RuntimeError):
    """Base exception for context stack errors"""
    pass


class ReentrancyError(ContextError):
    """Context layer is already active on some stack"""
    pass


class StaleTokenError(ContextError):
    """Token already used, or its layer is not the current top layer"""
    pass
