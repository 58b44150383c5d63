"""Error taxonomy shared by the Dify client, task processors and routers."""

from __future__ import annotations

from typing import Dict, Type


class CanvasFlowError(Exception):
    """Base class for errors surfaced to API callers.

    ``message`` is the internal description (logged), ``public_message`` is
    what the client sees. ``error_id`` correlates a client-visible failure with
    the server-side log entry.
    """

    kind = "UNKNOWN_ERROR"
    status_code = 500
    retryable = True
    default_message = "A server error occurred."

    def __init__(self, message: str | None = None, *, error_id: str | None = None) -> None:
        self.message = message or self.default_message
        self.error_id = error_id
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message

    def to_payload(self) -> Dict[str, str]:
        payload = {"message": self.public_message}
        if self.error_id:
            payload["error_id"] = self.error_id
        return payload

    def __str__(self) -> str:
        if self.error_id:
            return f"{self.message} Error ID: {self.error_id}"
        return self.message


class TaskValidationError(CanvasFlowError):
    kind = "VALIDATION_ERROR"
    status_code = 400
    retryable = False
    default_message = "Required information is missing."


class UnknownTaskError(CanvasFlowError):
    kind = "UNKNOWN_TASK"
    status_code = 400
    retryable = False
    default_message = "Unknown task."

    def __init__(self, task: object, *, error_id: str | None = None) -> None:
        self.task = task
        super().__init__(f"Unknown task: {task}", error_id=error_id)


class ConfigurationError(CanvasFlowError):
    kind = "CONFIG_ERROR"
    status_code = 500
    retryable = False
    default_message = "Dify API configuration is missing."


class WorkflowConfigError(CanvasFlowError):
    kind = "WORKFLOW_CONFIG_ERROR"
    status_code = 400
    retryable = False
    default_message = "The Dify workflow is misconfigured. Please contact the administrator."

    @property
    def public_message(self) -> str:
        return self.default_message


class UpstreamAuthError(CanvasFlowError):
    kind = "AUTHENTICATION_ERROR"
    status_code = 401
    retryable = False
    default_message = "Dify API authentication failed. Please check the API settings."

    @property
    def public_message(self) -> str:
        return self.default_message


class UpstreamNotFoundError(CanvasFlowError):
    kind = "RESOURCE_NOT_FOUND"
    status_code = 404
    retryable = False
    default_message = "The Dify workflow was not found. Please check the settings."

    @property
    def public_message(self) -> str:
        return self.default_message


class UpstreamTimeoutError(CanvasFlowError):
    kind = "TIMEOUT_ERROR"
    status_code = 408
    retryable = True
    default_message = "The Dify API request timed out. Please try again later."


class UpstreamWorkflowFailure(CanvasFlowError):
    kind = "WORKFLOW_FAILED"
    status_code = 400
    retryable = False
    default_message = "The Dify workflow failed. Please contact the administrator."

    @property
    def public_message(self) -> str:
        return self.default_message


class UpstreamHTTPError(CanvasFlowError):
    kind = "UNKNOWN_ERROR"
    status_code = 500
    retryable = True
    default_message = "The Dify API returned an error."

    def __init__(self, upstream_status: int, *, error_id: str | None = None) -> None:
        self.upstream_status = upstream_status
        super().__init__(f"Dify API error: {upstream_status}", error_id=error_id)


class ResponseParseError(CanvasFlowError):
    kind = "PARSE_ERROR"
    status_code = 500
    retryable = False
    default_message = "Failed to parse the Dify response."


class EmptyResultError(CanvasFlowError):
    kind = "EMPTY_RESULT"
    status_code = 500
    retryable = False

    def __init__(self, task: str, *, error_id: str | None = None) -> None:
        self.task = task
        super().__init__(f"Dify returned no {task} data.", error_id=error_id)


class NetworkError(CanvasFlowError):
    kind = "NETWORK_ERROR"
    status_code = 500
    retryable = True
    default_message = "Could not reach the Dify API."


class UnknownError(CanvasFlowError):
    kind = "UNKNOWN_ERROR"
    status_code = 500
    retryable = True
    default_message = "A server error occurred."


_STATUS_ERRORS: Dict[int, Type[CanvasFlowError]] = {
    400: WorkflowConfigError,
    401: UpstreamAuthError,
    403: UpstreamAuthError,
    404: UpstreamNotFoundError,
    408: UpstreamTimeoutError,
}


def error_for_status(status_code: int, *, error_id: str | None = None) -> CanvasFlowError:
    """Translate a non-2xx upstream status into the matching error."""

    error_cls = _STATUS_ERRORS.get(status_code)
    if error_cls is None:
        return UpstreamHTTPError(status_code, error_id=error_id)
    return error_cls(f"Dify API error: {status_code}", error_id=error_id)


def is_retryable(error: BaseException) -> bool:
    """Timeouts, network and unknown failures are worth retrying."""

    if isinstance(error, CanvasFlowError):
        return error.retryable
    return True
