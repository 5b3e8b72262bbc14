"""
Exceptions raised by ddsend.
"""


class DDSendError(Exception):
    """Base class for all ddsend errors."""


class EncodingError(DDSendError):
    """A log record could not be rendered into a line."""


class ConfigError(DDSendError, ValueError):
    """Invalid configuration (missing key, malformed host, bad value)."""
