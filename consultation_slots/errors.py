class SchedulingError(Exception):
    """Base error for the scheduling package"""


class ConfigurationError(SchedulingError, RuntimeError):
    """
    Deployment misconfiguration (bad operating window, zero-length
    consultation kind, unusable settings value).

    Raised when models or the engine are constructed, never per query.
    """


class UnknownConsultationKind(SchedulingError, KeyError):
    """Requested consultation kind is not in the configured registry"""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"Unknown consultation kind: {self.key!r}"
