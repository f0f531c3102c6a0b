import enum
import json
import logging
import typing

from hospital_training.utils.aws_env_vars import get_allowed_origins
from hospital_training.utils.base_types import HospitalNumber

_LOGGER = logging.getLogger(__name__)


QueryParams = typing.NewType("QueryParams", dict[str, str])


class ErrorCode(enum.Enum):
    """HTTP status and default client-facing message for each error class the API surfaces."""

    AUTHENTICATION_FAILED = (401, "User identification failed.")
    AUTHORIZATION_FAILED = (403, "You are not permitted to perform this action.")
    RESOURCE_NOT_FOUND = (404, "Resource not found or method not allowed.")
    METHOD_NOT_ALLOWED = (405, "HTTP method not allowed.")
    VALIDATION_ERROR = (400, "Request validation failed.")
    CONFLICT = (409, "Resource already exists.")
    AI_SERVICE_UNAVAILABLE = (503, "The AI service is currently unavailable.")
    INTERNAL_ERROR = (500, "An internal server error occurred.")

    def __init__(self, status_code: int, default_message: str) -> None:
        self.status_code = status_code
        self.default_message = default_message


def get_method(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("method", "UNKNOWN")


def get_path(event: dict) -> str:
    return event.get("requestContext", {}).get("http", {}).get("path", "")


def get_path_parts(event: dict) -> list[str]:
    path = get_path(event).strip("/")
    return path.split("/") if path else []


def get_query_string_parameters(event: dict) -> QueryParams:
    return QueryParams(event.get("queryStringParameters") or {})


def get_user_id_from_event(event: dict[str, typing.Any]) -> typing.Optional[HospitalNumber]:
    """
    Extracts the caller's hospital number from the Lambda event context.
    The authorizer places the identity claims into the 'lambda' key.
    """
    try:
        user_id = event.get("requestContext", {}).get("authorizer", {}).get("lambda", {}).get("sub")
        if user_id:
            return HospitalNumber(str(user_id))

        _LOGGER.warning("User ID ('sub') not found in authorizer's lambda context.")
        return None
    except Exception as e:
        _LOGGER.error("Error extracting user_id from event: %s", str(e))
        return None


def _get_allow_origin(event: typing.Optional[dict[str, typing.Any]]) -> str:
    allowed_origins = get_allowed_origins()
    if not allowed_origins:
        return "*"
    origin = ((event or {}).get("headers") or {}).get("origin", "")
    return origin if origin in allowed_origins else "null"


def format_lambda_response(
    status_code: int,
    body: typing.Any,
    *,
    event: typing.Optional[dict[str, typing.Any]] = None,
    additional_headers: typing.Optional[dict[str, str]] = None,
) -> dict[str, typing.Any]:
    """
    Formats API Gateway proxy responses with CORS headers.

    With ALLOWED_ORIGINS configured, the request origin is echoed back only when it is listed.
    """
    headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": _get_allow_origin(event),
        "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key,X-Amz-Security-Token",
        "Access-Control-Allow-Methods": "OPTIONS,GET,POST,PUT,DELETE",
    }
    if additional_headers:
        headers.update(additional_headers)

    return {
        "statusCode": status_code,
        "headers": headers,
        # Pydantic error details can carry non-JSON values (e.g. the offending exception)
        "body": json.dumps(body, default=str) if body is not None else None,
    }


def create_error_response(
    error_code: ErrorCode,
    message: typing.Optional[str] = None,
    *,
    details: typing.Any = None,
    event: typing.Optional[dict[str, typing.Any]] = None,
) -> dict[str, typing.Any]:
    body: dict[str, typing.Any] = {
        "message": message or error_code.default_message,
        "errorCode": error_code.name,
    }
    if details is not None:
        body["details"] = details
    return format_lambda_response(error_code.status_code, body, event=event)
