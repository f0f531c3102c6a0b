import logging
import typing

from pydantic import ValidationError

from hospital_training.access.role_access import (
    filter_modules_for_dashboard,
    get_effective_dashboard_role,
    group_modules_by_section,
)
from hospital_training.catalog.modules import PASSING_SCORE, get_module
from hospital_training.cloudwatch.metrics import MetricsManager
from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.models.module_models import ModuleModel
from hospital_training.models.quiz_models import QuizCompletionInputModel
from hospital_training.models.user_models import UserProfileModel
from hospital_training.progress.progress_aggregator import apply_quiz_result, compute_progress
from hospital_training.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path,
    get_query_string_parameters,
    get_user_id_from_event,
)
from hospital_training.utils.aws_env_vars import get_modules_table_name, get_user_profile_table_name

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def dump_module_for_learner(module: ModuleModel) -> dict:
    # Answer keys stay server-side; quizzes are served by the quiz endpoint
    return module.model_dump(mode="json", exclude={"questions"}, exclude_none=True)


class UserProgressApiHandler:
    def __init__(
        self,
        user_profile_table: UserProfileTable,
        modules_table: ModulesTable,
        metrics_manager: MetricsManager,
    ):
        self.user_profile_table = user_profile_table
        self.modules_table = modules_table
        self.metrics_manager = metrics_manager

    def _build_dashboard(self, profile: UserProfileModel, preview_role: typing.Optional[str]) -> dict:
        effective_role = get_effective_dashboard_role(profile.role, preview_role)
        visible_modules = filter_modules_for_dashboard(effective_role, self.modules_table.fetch_catalog())
        summary = compute_progress(profile.progress, visible_modules)

        return {
            "profile": profile.model_dump(mode="json", exclude_none=True),
            "effectiveRole": effective_role,
            "sections": [
                {"section": section, "modules": [dump_module_for_learner(module) for module in modules]}
                for section, modules in group_modules_by_section(visible_modules).items()
            ],
            "summary": summary.model_dump(),
        }

    def _handle_get_request(self, event: dict, profile: UserProfileModel) -> dict:
        preview_role = get_query_string_parameters(event).get("previewRole")
        _LOGGER.info(f"Building dashboard for {profile.hospitalNumber} (preview role: {preview_role})")
        return format_lambda_response(200, self._build_dashboard(profile, preview_role), event=event)

    def _handle_put_request(self, event: dict, profile: UserProfileModel) -> dict:
        raw_body = event.get("body")
        if not raw_body:
            _LOGGER.error("Request body is missing for progress update.")
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

        try:
            completion = QuizCompletionInputModel.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Progress update request body validation error: {e.errors()}", exc_info=True)
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)

        visible_modules = filter_modules_for_dashboard(profile.role, self.modules_table.fetch_catalog())
        if get_module(completion.moduleId, visible_modules) is None:
            _LOGGER.warning(f"Rejected progress for {completion.moduleId}: not visible to role {profile.role}")
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"Module {completion.moduleId} not found.", event=event
            )

        updated = apply_quiz_result(profile.progress.get(completion.moduleId), completion.score, completion.answers)
        if not self.user_profile_table.update_module_progress(profile.hospitalNumber, completion.moduleId, updated):
            self.metrics_manager.put_metric("ProgressWriteFailure", 1)
            return create_error_response(ErrorCode.INTERNAL_ERROR, "Failed to save quiz result.", event=event)

        self.metrics_manager.put_metric("QuizPassed" if completion.score >= PASSING_SCORE else "QuizFailed", 1)
        profile.progress[completion.moduleId] = updated
        return format_lambda_response(200, self._build_dashboard(profile, None), event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path = get_path(event)

        _LOGGER.info(f"UserProgressApiHandler: {http_method} {path} for user: {user_id}")

        try:
            if path != "/progress" or http_method not in ("GET", "PUT"):
                _LOGGER.warning(f"Unsupported path or method for User Progress: {http_method} {path}")
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

            profile = self.user_profile_table.get_profile(user_id)
            if profile is None:
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "User profile not found.", event=event)

            if http_method == "GET":
                return self._handle_get_request(event, profile)
            return self._handle_put_request(event, profile)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in UserProgressApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def user_progress_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global user_progress_lambda_handler received event.")
    metrics_manager = MetricsManager("HospitalTraining/Progress")

    try:
        api_handler = UserProgressApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            modules_table=ModulesTable(get_modules_table_name()),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in user_progress_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during UserProgressApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
