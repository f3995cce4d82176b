"""Exception types raised by insightops."""


class InsightOpsError(Exception):
    """Base class for insightops errors."""


class ConfigurationError(InsightOpsError):
    """Invalid or missing configuration detected at startup."""
