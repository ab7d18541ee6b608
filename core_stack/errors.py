"""Error taxonomy for stack reconciliation.

Every error raised by this library derives from :class:`StackError`.  The
executor converts anything that escapes a reconciliation into exactly one
:class:`~core_stack.models.Failure` result.
"""

from typing import Any

THROTTLING_ERROR_CODES = [
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RequestThrottled",
]


class StackError(Exception):
    """Base class for all stack reconciliation errors.

    :param message: Human readable description of the failure
    :type message: str
    :param details: Additional structured details for logging
    :type details: dict[str, Any] | None
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        return self.message


class MalformedParameterError(StackError, ValueError):
    """A parameter override or keep key could not be parsed.

    Raised before any call is made to the cloud provider.
    """

    def __init__(self, message: str, param: str | None = None):
        super().__init__(message, {"Param": param} if param is not None else None)
        self.param = param


class ProviderCommunicationError(StackError):
    """Talking to the CloudFormation API failed (network, auth, throttling).

    The library never retries these.  ``retryable`` tells the caller whether
    a retry layered above this library is likely to help.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, {"Code": code, "Operation": operation})
        self.code = code
        self.operation = operation

    @property
    def retryable(self) -> bool:
        return self.code in THROTTLING_ERROR_CODES


class StackOperationError(StackError):
    """The create or update ended in a failed state, or was rejected.

    ``reason`` carries the provider's text verbatim.
    """

    def __init__(
        self,
        reason: str,
        stack_name: str | None = None,
        status: str | None = None,
        failed_events: list[dict[str, Any]] | None = None,
    ):
        super().__init__(
            reason,
            {"StackName": stack_name, "StackStatus": status},
        )
        self.reason = reason
        self.stack_name = stack_name
        self.status = status
        self.failed_events = failed_events or []


class ReconcileTimeoutError(StackError):
    """The stack did not reach a terminal state before the deadline."""

    def __init__(self, stack_name: str, timeout: float, status: str | None = None):
        super().__init__(
            f"Timed out after {timeout} seconds waiting for stack '{stack_name}' (last status: {status})",
            {"StackName": stack_name, "Timeout": timeout, "StackStatus": status},
        )
        self.stack_name = stack_name
        self.timeout = timeout
        self.status = status


class ReconcileCancelledError(StackError):
    """The caller cancelled the request before it was submitted or while waiting on it."""

    def __init__(self, stack_name: str):
        super().__init__(
            f"Reconciliation of stack '{stack_name}' was cancelled",
            {"StackName": stack_name},
        )
        self.stack_name = stack_name


class UnexpectedError(StackError):
    """Catch-all wrapper for anything else raised during a reconciliation.

    The original exception is chained as ``__cause__``.
    """

    @classmethod
    def wrap(cls, e: BaseException) -> "UnexpectedError":
        error = cls(
            "Internal error {} - {}".format(type(e).__name__, str(e)),
            {"ErrorType": type(e).__name__},
        )
        error.__cause__ = e
        return error


class NoUpdatesError(StackOperationError):
    """UpdateStack was rejected because the template and parameters are unchanged."""
