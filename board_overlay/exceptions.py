"""Custom exceptions for the board overlay engine."""


class OverlayError(Exception):
    """Base overlay error."""
    pass


class AcquisitionError(OverlayError):
    """Frame source unavailable, denied or lost. Fatal to a session."""
    pass


class ConfigError(OverlayError):
    """Configuration-related errors."""
    pass
