"""
Exception types raised by the metric supervisor.

Only ConfigError and SpawnError are fatal. Metric and signal errors are
reported by the watcher and the sampling loop carries on.
"""


class SupervisorError(RuntimeError):
    """Base class for all supervisor errors."""


class ConfigError(SupervisorError):
    """A required setting or the child command is missing or invalid."""


class SpawnError(SupervisorError):
    """The child process could not be started."""


class MetricError(SupervisorError):
    """The current metric value could not be determined."""


class MetricFetchError(MetricError):
    """The metrics endpoint could not be reached or returned an error status."""


class MetricParseError(MetricError):
    """A matching metric line carried a value that is not a 64-bit integer."""


class MetricNotFoundError(MetricError):
    """No line in the metrics body matched the configured metric name."""


class SignalDeliveryError(SupervisorError):
    """A signal could not be delivered to the child process."""
