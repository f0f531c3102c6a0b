import logging
import typing

from pydantic import ValidationError

from hospital_training.access.role_access import filter_modules_for_dashboard
from hospital_training.catalog.modules import get_module
from hospital_training.cloudwatch.metrics import MetricsManager
from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.secrets_table import SecretsTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.models.module_models import ModuleModel
from hospital_training.models.quiz_models import QuizAttemptRequestModel, QuizQuestionsResponseModel
from hospital_training.models.user_models import UserProfileModel
from hospital_training.progress.progress_aggregator import apply_quiz_result
from hospital_training.quiz.question_source import select_quiz_questions
from hospital_training.quiz.quiz_engine import QuizStateError, grade_answers
from hospital_training.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path_parts,
    get_user_id_from_event,
)
from hospital_training.utils.aws_env_vars import (
    get_modules_table_name,
    get_secrets_table_name,
    get_user_profile_table_name,
)
from hospital_training.utils.base_types import ModuleId
from hospital_training.utils.chatbot_utils import ChatBotWrapper

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class QuizApiHandler:
    def __init__(
        self,
        user_profile_table: UserProfileTable,
        modules_table: ModulesTable,
        secrets_table: SecretsTable,
        chatbot_wrapper: ChatBotWrapper,
        metrics_manager: MetricsManager,
    ):
        self.user_profile_table = user_profile_table
        self.modules_table = modules_table
        self.secrets_table = secrets_table
        self.chatbot_wrapper = chatbot_wrapper
        self.metrics_manager = metrics_manager

    def _find_visible_module(self, profile: UserProfileModel, module_id: ModuleId) -> typing.Optional[ModuleModel]:
        return get_module(module_id, filter_modules_for_dashboard(profile.role, self.modules_table.fetch_catalog()))

    def _handle_get_quiz(self, event: dict, module: ModuleModel) -> dict:
        source, questions = select_quiz_questions(module, self.chatbot_wrapper, self.secrets_table.get_chatbot_api_key)
        if source == "fallback":
            self.metrics_manager.put_metric("QuizFallbackServed", 1)
        _LOGGER.info(f"Serving {len(questions)} {source} questions for module {module.id}")

        response = QuizQuestionsResponseModel(moduleId=module.id, source=source, questions=questions)
        return format_lambda_response(200, response.model_dump(mode="json"), event=event)

    def _handle_post_attempt(self, event: dict, profile: UserProfileModel, module: ModuleModel) -> dict:
        """
        Grades a complete answer map and records the result.

        Modules with fixed questions are graded against the stored answer keys. Generated and
        fallback sets are not stored, so for other modules the `questions` echoed in the request
        body are graded as given and a client can choose its own correct options.
        """
        raw_body = event.get("body")
        if not raw_body:
            return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

        try:
            attempt = QuizAttemptRequestModel.model_validate_json(raw_body)
        except ValidationError as e:
            _LOGGER.error(f"Quiz attempt request body validation error: {e.errors()}", exc_info=True)
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)

        # Fixed questions are authoritative; generated and fallback sets are echoed back by the client
        questions = module.questions or attempt.questions
        try:
            result = grade_answers(questions, attempt.answers)
        except QuizStateError as e:
            _LOGGER.warning(f"Rejected quiz attempt for module {module.id}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        updated = apply_quiz_result(profile.progress.get(module.id), result.scorePercent, result.answers)
        if not self.user_profile_table.update_module_progress(profile.hospitalNumber, module.id, updated):
            self.metrics_manager.put_metric("ProgressWriteFailure", 1)
            return create_error_response(ErrorCode.INTERNAL_ERROR, "Failed to save quiz result.", event=event)

        self.metrics_manager.set_dimension("Role", profile.role)
        self.metrics_manager.put_metric("QuizPassed" if result.passed else "QuizFailed", 1)
        return format_lambda_response(
            200,
            {
                "result": result.model_dump(mode="json"),
                "moduleProgress": updated.model_dump(mode="json", exclude_none=True),
            },
            event=event,
        )

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path_parts = get_path_parts(event)
        _LOGGER.info(f"QuizApiHandler: {http_method} /{'/'.join(path_parts)} for user: {user_id}")

        is_get_quiz = http_method == "GET" and len(path_parts) == 2
        is_post_attempt = http_method == "POST" and len(path_parts) == 3 and path_parts[2] == "attempts"
        if not path_parts or path_parts[0] != "quiz" or not (is_get_quiz or is_post_attempt):
            _LOGGER.warning(f"Unsupported path or method for Quiz: {http_method} {path_parts}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        try:
            profile = self.user_profile_table.get_profile(user_id)
            if profile is None:
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "User profile not found.", event=event)

            module = self._find_visible_module(profile, ModuleId(path_parts[1]))
            if module is None:
                return create_error_response(
                    ErrorCode.RESOURCE_NOT_FOUND, f"Module {path_parts[1]} not found.", event=event
                )

            if is_get_quiz:
                return self._handle_get_quiz(event, module)
            return self._handle_post_attempt(event, profile, module)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in QuizApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def quiz_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global quiz_lambda_handler received event.")
    metrics_manager = MetricsManager("HospitalTraining/Quiz")

    try:
        api_handler = QuizApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            modules_table=ModulesTable(get_modules_table_name()),
            secrets_table=SecretsTable(get_secrets_table_name()),
            chatbot_wrapper=ChatBotWrapper(),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in quiz_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during QuizApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
