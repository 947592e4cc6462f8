"""Errors raised by the metrics engine and its data-access collaborators."""


class MetricsError(Exception):
    """Base class for all metrics engine errors."""


class DataSourceUnavailable(MetricsError):
    """The external store could not be read (or written).

    Fatal for the sprint being processed. Never retried.
    """


class SprintNotFound(MetricsError):
    """The requested sprint does not exist in the store."""


class InvalidSprintWindow(MetricsError):
    """A sprint cannot be aggregated because its window is incomplete."""


class ConfigError(MetricsError):
    """Invalid application configuration."""
