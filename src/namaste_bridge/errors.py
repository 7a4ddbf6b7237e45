"""
Error taxonomy for terminology resolution.

Unknown source codes are not errors: resolution reports them as an empty,
``found=False`` result.
"""


class MappingError(Exception):
    """Base class for terminology mapping errors."""


class InvalidInput(MappingError, ValueError):
    """Caller supplied an empty or malformed code."""


class StoreUnavailable(MappingError):
    """A concept store query failed or timed out."""
