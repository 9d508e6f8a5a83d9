# errors.py


class ReconcileError(Exception):
    """Base class for failures that abort a reconciliation pass."""


class FetchError(ReconcileError):
    """Telemetry endpoint unreachable or answered with garbage."""


class NormalizationError(ReconcileError):
    """Payload top-level structure is unusable."""


class StoreError(ReconcileError):
    """A read or write against the database failed."""
