"""
Exception hierarchy for pktcraft.

Every exception derives from PktcraftError and from the builtin exception
that best describes it, so callers may catch either.
"""

from __future__ import annotations


class PktcraftError(Exception):
    """Base class for all pktcraft errors."""


class TruncatedInputError(PktcraftError, ValueError):
    """Buffer is shorter than a field or struct requires."""

    def __init__(self, field: str, needed: int, available: int):
        self.field = field
        self.needed = needed
        self.available = available
        super().__init__(
            f"field {field!r} needs {needed} byte(s), only {available} available"
        )


class UnattachedHeaderError(PktcraftError, RuntimeError):
    """Header is not in a packet, or a required sibling header is missing."""


class InvalidFieldValueError(PktcraftError, ValueError):
    """Value cannot be assigned to a field."""


class UnknownBindingError(PktcraftError, ValueError):
    """Container header class knows no binding to the requested header class."""


class ParseError(PktcraftError, ValueError):
    """First header of a buffer cannot be identified."""
