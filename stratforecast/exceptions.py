"""
Exceptions raised by Stratforecast.
"""


class StratforecastError(Exception):
    """Base class for Stratforecast errors."""


class SnapshotError(StratforecastError, ValueError):
    """A snapshot file could not be read or written."""


class OperationNotFoundError(StratforecastError, KeyError):
    """No operation with the requested id exists in the snapshot."""

    def __init__(self, operation_id: str):
        super().__init__(operation_id)
        self.operation_id = operation_id

    def __str__(self):
        return f"Operation {self.operation_id} not found"
