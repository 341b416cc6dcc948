"""
Exception hierarchy for unnbound-logger.

Logging calls never raise; these exceptions are only raised while a logger
or engine is being constructed from invalid configuration.
"""


class UnnboundLoggerError(Exception):
    """
    Base exception for all unnbound-logger errors.

    Example:
        >>> try:
        ...     logger = UnnboundLogger(default_level="loud")
        ... except UnnboundLoggerError as e:
        ...     print(f"Logger misconfigured: {e}")
    """

    pass


class ConfigurationError(UnnboundLoggerError, ValueError):
    """
    Raised when logger configuration is invalid.

    Covers unknown log levels and unknown engine names supplied at
    construction time.

    Example:
        >>> UnnboundLogger(default_level="verbose")
        Traceback (most recent call last):
        ...
        ConfigurationError: Invalid log level: verbose
    """

    pass
