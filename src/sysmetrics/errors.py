from __future__ import annotations


class MetricsError(Exception):
    """Base class for every error raised by the exporter."""


class DuplicateMetric(MetricsError):
    def __init__(self, name: str) -> None:
        super().__init__(f"metric already registered: {name}")
        self.name = name


class RegistrationClosed(MetricsError):
    """Registration attempted after the registry was sealed."""


class MetricKindError(MetricsError, ValueError):
    """An update does not fit the metric it targets."""


class LockAcquisitionFailure(MetricsError):
    """The registry lock could not be taken within the configured timeout."""


class DataSourceUnavailable(MetricsError):
    def __init__(self, source: str, reason: str = "") -> None:
        super().__init__(f"{source}: {reason}" if reason else source)
        self.source = source
        self.reason = reason


class PartialGroupFailure(MetricsError):
    def __init__(self, group: str, failed: list[str], succeeded: list[str]) -> None:
        super().__init__(f"{group}: failed={failed} succeeded={succeeded}")
        self.group = group
        self.failed = failed
        self.succeeded = succeeded


class ServerStartFailure(MetricsError):
    """The exposition server could not bind or start."""


class InitializationError(MetricsError):
    """Registry initialization aborted; the exporter must not start."""


class RegistryClosed(MetricsError):
    """The registry was torn down and no longer accepts reads or writes."""
