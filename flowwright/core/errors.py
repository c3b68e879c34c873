"""
Exception hierarchy for flowwright.

- FlowwrightError (base)
  - StructuralError        validator rejected the flow (never retried)
  - CapabilityError        a backend cannot represent an action
  - ResolutionError        a trigger name could not be resolved to an id
  - RemoteError            failure reported by the remote workflow service
    - AuthError            401 / 403 (never retried)
    - RemoteValidationError  400 / 409 / 422 (never retried)
    - RateLimitedError     429
    - ServerError          5xx
    - NetworkError         transport failure or timeout
  - UIStepError            a simulated-UI step failed
"""

from __future__ import annotations


class FlowwrightError(Exception):
    """Base class for all flowwright errors."""


class StructuralError(FlowwrightError):
    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Flow definition is invalid: " + "; ".join(self.errors))


class CapabilityError(FlowwrightError):
    def __init__(self, message: str, *, action_id: str | None = None, backend: str = "") -> None:
        super().__init__(message)
        self.action_id = action_id
        self.backend = backend


class ResolutionError(FlowwrightError):
    def __init__(self, message: str, *, name: str = "", available: list[str] | None = None) -> None:
        super().__init__(message)
        self.name = name
        self.available = list(available or [])


class RemoteError(FlowwrightError):
    """
    A call to the remote workflow service failed.

    ``kind`` is matched by :func:`flowwright.utils.retry.with_retry` against
    its ``retryable_errors`` patterns.
    """

    kind = "remote-error"

    def __init__(self, message: str, *, status_code: int | None = None, body: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthError(RemoteError):
    kind = "auth-error"


class RemoteValidationError(RemoteError):
    kind = "validation-error"


class RateLimitedError(RemoteError):
    kind = "rate-limited"


class ServerError(RemoteError):
    kind = "server-error"


class NetworkError(RemoteError):
    kind = "network-error"


class UIStepError(FlowwrightError):
    kind = "ui-step-error"

    def __init__(self, message: str, *, step_index: int | None = None) -> None:
        super().__init__(message)
        self.step_index = step_index
