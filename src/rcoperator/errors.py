"""Exception hierarchy for reconciliation failures."""

import json

import urllib3
from kubernetes.client.exceptions import ApiException

# Kubernetes status reasons by HTTP status code, used when the API
# response body does not carry an explicit reason.
STATUS_REASONS = {
    400: "BadRequest",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    405: "MethodNotAllowed",
    409: "Conflict",
    410: "Expired",
    422: "Invalid",
    429: "TooManyRequests",
    500: "InternalError",
    503: "ServiceUnavailable",
    504: "Timeout",
}

UNKNOWN_REASON = "Unknown"

# Raised by the kubernetes client when the API server cannot be reached
TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, OSError)


class ReconcileError(Exception):
    """Base class for every error surfaced on a status condition.

    Args:
        message: Human readable text, copied into the condition message
        reason: Short classification code, copied into the condition reason
        condition_type: Condition most specifically affected by the error
    """

    reason = UNKNOWN_REASON

    def __init__(self, message, reason=None, condition_type=None):
        super().__init__(message)
        if reason:
            self.reason = reason
        self.condition_type = condition_type


class NotFoundError(ReconcileError):
    """The requested object does not exist."""

    reason = "NotFound"


class ValidationError(ReconcileError):
    """The desired state is internally inconsistent and cannot be retried."""

    reason = "Invalid"


class TransientPlatformError(ReconcileError):
    """Network or API failure worth retrying."""

    reason = "InternalError"


class ConflictError(ReconcileError):
    """Optimistic concurrency conflict on a write."""

    reason = "Conflict"


class PreconditionError(ReconcileError):
    """A one-shot operation target is missing or not runnable."""

    reason = "Error"


class CommandExecutionError(ReconcileError):
    """A remote command failed or could not be started."""

    reason = "Error"


class UnknownConditionTypeError(ReconcileError):
    """A status condition carries a type this operator does not know."""

    reason = "Invalid"


def api_reason(exc):
    """Return the Kubernetes status reason carried by an ApiException."""
    if exc.body:
        try:
            body = json.loads(exc.body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("reason"):
            return body["reason"]
    return STATUS_REASONS.get(exc.status, UNKNOWN_REASON)


def api_message(exc):
    """Return the most useful message from an ApiException."""
    if exc.body:
        try:
            body = json.loads(exc.body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
    return f"({exc.status}) {exc.reason}"


def from_api_exception(exc, condition_type=None):
    """Convert an ApiException into the operator's error hierarchy."""
    reason = api_reason(exc)
    message = api_message(exc)

    if exc.status == 404:
        return NotFoundError(message, reason=reason, condition_type=condition_type)
    if exc.status == 409:
        return ConflictError(message, reason=reason, condition_type=condition_type)
    if exc.status == 422:
        return ValidationError(message, reason=reason, condition_type=condition_type)
    return TransientPlatformError(
        message, reason=reason, condition_type=condition_type
    )


def classify(err):
    """Short classification code for any error, used as a condition reason."""
    if isinstance(err, ReconcileError):
        return err.reason
    if isinstance(err, ApiException):
        return api_reason(err)
    if isinstance(err, TRANSPORT_ERRORS):
        return "ServiceUnavailable"
    return UNKNOWN_REASON


def is_conflict(err):
    """Check whether an error is an optimistic concurrency conflict."""
    if isinstance(err, ConflictError):
        return True
    return isinstance(err, ApiException) and err.status == 409


def from_transport_error(exc, condition_type=None):
    """Convert a connection level failure into a retryable error."""
    return TransientPlatformError(
        f"Kubernetes API unreachable: {exc}",
        reason="ServiceUnavailable",
        condition_type=condition_type,
    )
