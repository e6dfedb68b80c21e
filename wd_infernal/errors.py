"""
errors.py - Error taxonomy for wd_infernal.

    - ValidationError: malformed input (bad ISBN checksum, unparsable coordinate,
      unknown item id). Raised before any source is contacted.
    - AdapterError: a source failed (network, timeout, unexpected payload shape).
      Rules recover from it per fetch and record an Issue instead.

Ambiguity and "no match" are not errors: rules return several statements or an
empty list respectively.
"""

__all__ = ['InfernalError', 'ValidationError', 'AdapterError']


class InfernalError(Exception):
    """Base class for all wd_infernal errors."""


class ValidationError(InfernalError, ValueError):
    """Raised when request parameters are malformed."""


class AdapterError(InfernalError):
    """
    Raised by a source adapter when a lookup could not be completed.

    Attributes:
        source (str): Name of the failing source (e.g. 'wikidata', 'google_books').
        kind (str): Failure kind ('timeout', 'http_error', 'network', 'shape', ...).
    """

    def __init__(self, message: str, source: str = "", kind: str = "network"):
        super().__init__(message)
        self.source = source
        self.kind = kind
