"""
Sonar exceptions — the error taxonomy for outbound completion calls.

    SonarError
    ├── ConfigurationError      fatal, raised before any call is made
    ├── SonarTimeoutError       per-call timeout, never retried
    ├── TransientServerError    5xx / connection failure, retried
    │   └── MalformedResponseError   HTTP 200 without message content
    ├── PermanentClientError    any other HTTP error, never retried
    └── SanitizationFailure     model text could not be coerced into the expected shape
"""

from typing import Optional


class SonarError(Exception):
    """Base class for everything the Sonar integration raises."""


class ConfigurationError(SonarError):
    def __init__(self, message: str, config_key: str):
        super().__init__(message)
        self.config_key = config_key


class SonarTimeoutError(SonarError):
    def __init__(self, message: str, timeout_ms: int):
        super().__init__(message)
        self.timeout_ms = timeout_ms


class TransientServerError(SonarError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(TransientServerError):
    """A 2xx response that is missing choices[0].message.content."""

    def __init__(self, message: str, payload: str):
        super().__init__(message, status_code=200)
        self.payload = payload


class PermanentClientError(SonarError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SanitizationFailure(SonarError):
    def __init__(
        self,
        message: str,
        steps_tried: tuple[str, ...] = (),
        original_response: str = "",
    ):
        super().__init__(message)
        self.steps_tried = steps_tried
        self.original_response = original_response
