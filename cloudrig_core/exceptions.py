"""Exceptions raised by infrastructure drivers."""

from __future__ import annotations

from typing import Sequence


class DriverError(Exception):
    """Base class for errors originating in the driver layer itself."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidConfigurationError(DriverError, ValueError):
    """Connection parameters (or another attribute bundle) failed validation."""

    def __init__(self, parameter_set: str, missing: Sequence[str] = ()) -> None:
        self.parameter_set = parameter_set
        self.missing = tuple(missing)
        message = f"One or more required {parameter_set} is missing or is invalid"
        if self.missing:
            message = f"{message}: {', '.join(self.missing)}"
        super().__init__(message)


class OperationTimeoutError(DriverError, TimeoutError):
    """The server did not reach the requested status before the deadline.

    The provider operation may still complete later, so callers should poll the
    server status again instead of reissuing the mutation.
    """

    def __init__(self, target: str, last_status: str | None, timeout: float, *, description: str = "server") -> None:
        self.target = target
        self.last_status = last_status
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.0f}s waiting for {description} to become "
            f"{target!r} (last status: {last_status!r})"
        )


class UnsupportedOperationError(DriverError, NotImplementedError):
    """The backend cannot fulfil the requested operation."""

    def __init__(self, operation: str, backend: str, reason: str | None = None) -> None:
        self.operation = operation
        self.backend = backend
        message = f"{operation} is not supported by the {backend} driver"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
