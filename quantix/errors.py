"""Exception types shared across the Quantix core."""

from __future__ import annotations


class QuantixError(Exception):
    """Base class for Quantix errors."""


class ValidationError(QuantixError, ValueError):
    """Input rejected before it reaches the synchronizer."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid input")


class RemoteError(QuantixError):
    """The remote mirror could not complete a request."""


class LocalStorageError(QuantixError):
    """A local cache blob could not be read or written."""


class RecordNotFound(QuantixError, LookupError):
    """No record with the requested id exists locally."""
