"""Exception hierarchy for blink-diff.

All errors raised on purpose by the package derive from BlinkDiffError so
embedding callers can catch a single type. Lower-level causes (OSError,
PIL.UnidentifiedImageError, pydantic.ValidationError) are chained.
"""


class BlinkDiffError(Exception):
    """Base class for all blink-diff errors."""

    pass


class ConfigurationError(BlinkDiffError, ValueError):
    """Raised when the comparison configuration is invalid.

    Detected before any image is loaded; values are never silently corrected.
    """

    pass


class LoadError(BlinkDiffError):
    """Raised when a source image is missing, unreadable, or undecodable."""

    pass


class WriteError(BlinkDiffError):
    """Raised when the output image cannot be written."""

    pass
