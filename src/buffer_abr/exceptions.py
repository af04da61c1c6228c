"""
ABR Errors

This module defines the exceptions raised by the ABR decision engine.
"""


class AbrError(Exception):
    """Base class for all ABR engine errors."""


class PreconditionError(AbrError):
    """Raised when an operation runs before the engine was set up.

    Covers a missing configuration before the first evaluation and a
    missing switch callback when a variant has been selected.
    """


class InvariantError(AbrError):
    """Raised when the engine's internal state breaks an invariant."""


class ConfigurationError(AbrError, ValueError):
    """Raised for invalid configuration values."""
