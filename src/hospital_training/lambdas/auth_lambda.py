import logging
import typing

from pydantic import ValidationError

from hospital_training.catalog.org_structure import ORGANIZATIONAL_STRUCTURE, RegistrationError, validate_placement
from hospital_training.cloudwatch.metrics import MetricsManager
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.models.user_models import USER_ROLES, LoginRequest, RegistrationDataModel
from hospital_training.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
)
from hospital_training.utils.aws_env_vars import get_user_profile_table_name

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

INVALID_CREDENTIALS_MESSAGE = "Invalid last name or hospital number."


class AuthApiHandler:
    """
    Identification by last name plus hospital number, and self-registration.

    These routes sit in front of the authorizer, so no caller identity is available here.
    """

    def __init__(self, user_profile_table: UserProfileTable, metrics_manager: MetricsManager):
        self.user_profile_table = user_profile_table
        self.metrics_manager = metrics_manager

    def _handle_login(self, event: dict) -> dict:
        try:
            body = LoginRequest.model_validate_json(event.get("body") or "{}")
        except ValidationError as e:
            _LOGGER.warning(f"Login request validation error: {e.errors()}")
            self.metrics_manager.put_metric("LoginFailure", 1)
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)

        profile = self.user_profile_table.get_profile(body.hospitalNumber)
        if not profile or profile.lastName.strip().lower() != body.lastName.lower():
            _LOGGER.info(f"Login rejected for hospital number {body.hospitalNumber}.")
            self.metrics_manager.put_metric("LoginFailure", 1)
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, INVALID_CREDENTIALS_MESSAGE, event=event)

        self.metrics_manager.put_metric("LoginSuccess", 1)
        return format_lambda_response(200, profile.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_register(self, event: dict) -> dict:
        try:
            registration = RegistrationDataModel.model_validate_json(event.get("body") or "{}")
            validate_placement(registration.division, registration.departmentOrSection)
        except ValidationError as e:
            _LOGGER.warning(f"Registration request validation error: {e.errors()}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except RegistrationError as e:
            _LOGGER.warning(f"Registration rejected: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        profile = self.user_profile_table.register_user(registration)
        if profile is None:
            return create_error_response(
                ErrorCode.CONFLICT,
                f"Hospital number {registration.hospitalNumber} is already registered.",
                event=event,
            )

        self.metrics_manager.put_metric("UserRegistered", 1)
        return format_lambda_response(201, profile.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_get_registration_options(self, event: dict) -> dict:
        return format_lambda_response(
            200,
            {"roles": list(USER_ROLES), "organizationalStructure": ORGANIZATIONAL_STRUCTURE},
            event=event,
        )

    def handle(self, event: dict) -> dict:
        path = get_path(event)
        method = get_method(event).upper()
        _LOGGER.info(f"AuthApiHandler: {method} {path}")

        try:
            if method == "POST" and path == "/auth/login":
                return self._handle_login(event)
            if method == "POST" and path == "/auth/register":
                return self._handle_register(event)
            if method == "GET" and path == "/auth/registration-options":
                return self._handle_get_registration_options(event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in AuthApiHandler: {e}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)

        return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "Auth route not found", event=event)


def auth_lambda_handler(event: dict, context: typing.Any) -> dict:
    _LOGGER.info("Auth lambda handler invoked.")
    metrics_manager = MetricsManager("HospitalTraining/Authentication")

    try:
        handler = AuthApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            metrics_manager=metrics_manager,
        )
        return handler.handle(event)
    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in auth_lambda_handler: {ve}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Critical error in auth_lambda_handler: {e}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
