"""
Anti-Detection Error Taxonomy

All errors raised by the control plane derive from AntiDetectError so
callers can catch the whole family at the workflow boundary.
"""


class AntiDetectError(Exception):
    """Base class for control plane errors."""
    pass


class ValidationError(AntiDetectError, ValueError):
    """Raised on malformed input (blank context id, bad whitelist file)."""
    pass


class PersistenceError(AntiDetectError):
    """Raised when the document store cannot read, write or verify a document."""
    pass
