import logging
import typing
from datetime import datetime, timezone

from pydantic import ValidationError

from hospital_training.cloudwatch.metrics import MetricsManager
from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.training_sessions_table import TrainingSessionsTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.evaluations.evaluation_aggregator import (
    EVALUATION_QUESTIONS,
    LIKERT_LABELS,
    EvaluationValidationError,
    build_evaluation,
    check_can_evaluate,
    submit_evaluation,
)
from hospital_training.models.module_models import ModuleModel
from hospital_training.models.session_models import EvaluationInputModel, TrainingSessionModel
from hospital_training.models.user_models import UserProfileModel
from hospital_training.sessions.session_categorizer import (
    categorize_sessions,
    is_session_open,
    user_session_completion,
)
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
    get_training_sessions_table_name,
    get_user_profile_table_name,
)
from hospital_training.utils.base_types import SessionId
from hospital_training.utils.input_validator import InputValidator, SuspiciousInputError

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionsApiHandler:
    """Learner-facing session routes: the session list, joining, and evaluations."""

    def __init__(
        self,
        user_profile_table: UserProfileTable,
        training_sessions_table: TrainingSessionsTable,
        modules_table: ModulesTable,
        metrics_manager: MetricsManager,
        now_provider: typing.Callable[[], datetime] = _utc_now,
    ):
        self.user_profile_table = user_profile_table
        self.training_sessions_table = training_sessions_table
        self.modules_table = modules_table
        self.metrics_manager = metrics_manager
        self.now_provider = now_provider

    def _dump_session_for_learner(
        self,
        session: TrainingSessionModel,
        profile: UserProfileModel,
        modules: list[ModuleModel],
    ) -> dict:
        # Other members' evaluations are only visible to admins
        session_dict = session.model_dump(mode="json", exclude={"evaluations"})
        own_evaluation = session.evaluations.get(profile.hospitalNumber)
        session_dict["completion"] = user_session_completion(session, profile.progress, modules)
        session_dict["myEvaluation"] = own_evaluation.model_dump(mode="json") if own_evaluation else None
        return session_dict

    def _handle_list_sessions(self, event: dict, profile: UserProfileModel) -> dict:
        categories = categorize_sessions(
            self.now_provider(), self.training_sessions_table.list_sessions(), profile.hospitalNumber
        )
        modules = self.modules_table.fetch_catalog()
        _LOGGER.info(
            f"User {profile.hospitalNumber}: {len(categories.assigned)} assigned, "
            f"{len(categories.joinable)} joinable open sessions"
        )
        return format_lambda_response(
            200,
            {
                "assigned": [self._dump_session_for_learner(s, profile, modules) for s in categories.assigned],
                "joinable": [self._dump_session_for_learner(s, profile, modules) for s in categories.joinable],
                "evaluationQuestions": EVALUATION_QUESTIONS,
                "likertLabels": LIKERT_LABELS,
            },
            event=event,
        )

    def _handle_join(self, event: dict, profile: UserProfileModel, session: TrainingSessionModel) -> dict:
        if not is_session_open(session, self.now_provider()):
            return create_error_response(ErrorCode.VALIDATION_ERROR, "This session is not open.", event=event)

        joined = self.training_sessions_table.add_member(session.id, profile.hospitalNumber)
        if joined is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Session {session.id} not found.", event=event)

        self.metrics_manager.put_metric("SessionJoined", 1)
        return format_lambda_response(
            200, self._dump_session_for_learner(joined, profile, self.modules_table.fetch_catalog()), event=event
        )

    def _handle_submit_evaluation(self, event: dict, profile: UserProfileModel, session: TrainingSessionModel) -> dict:
        try:
            evaluation_input = EvaluationInputModel.model_validate_json(event.get("body") or "{}")
            InputValidator.validate_field(evaluation_input.feedback, "feedback")
            check_can_evaluate(session, profile.hospitalNumber)
        except ValidationError as e:
            _LOGGER.warning(f"Evaluation request validation error: {e.errors()}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except (SuspiciousInputError, EvaluationValidationError) as e:
            _LOGGER.warning(f"Evaluation rejected for session {session.id}: {e}")
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        evaluation = build_evaluation(profile, evaluation_input, self.now_provider())
        _LOGGER.info(
            f"Evaluation from {profile.hospitalNumber} for session {session.id}: "
            f"{InputValidator.sanitize_for_logging(evaluation.feedback, 50)}"
        )
        updated = submit_evaluation(session, evaluation)
        if not self.training_sessions_table.save_evaluation(session.id, evaluation):
            self.metrics_manager.put_metric("EvaluationWriteFailure", 1)
            return create_error_response(ErrorCode.INTERNAL_ERROR, "Failed to save evaluation.", event=event)

        self.metrics_manager.put_metric("EvaluationSubmitted", 1)
        return format_lambda_response(
            200,
            {
                "sessionId": session.id,
                "evaluation": evaluation.model_dump(mode="json"),
                "evaluationCount": len(updated.evaluations),
            },
            event=event,
        )

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path_parts = get_path_parts(event)
        _LOGGER.info(f"SessionsApiHandler: {http_method} /{'/'.join(path_parts)} for user: {user_id}")

        is_list = http_method == "GET" and path_parts == ["sessions"]
        is_session_action = (
            http_method == "POST"
            and len(path_parts) == 3
            and path_parts[0] == "sessions"
            and path_parts[2] in ("join", "evaluation")
        )
        if not (is_list or is_session_action):
            _LOGGER.warning(f"Unsupported path or method for Sessions: {http_method} {path_parts}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        try:
            profile = self.user_profile_table.get_profile(user_id)
            if profile is None:
                return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, "User profile not found.", event=event)

            if is_list:
                return self._handle_list_sessions(event, profile)

            session_id = SessionId(path_parts[1])
            session = self.training_sessions_table.get_session(session_id)
            if session is None:
                return create_error_response(
                    ErrorCode.RESOURCE_NOT_FOUND, f"Session {session_id} not found.", event=event
                )

            if path_parts[2] == "join":
                return self._handle_join(event, profile, session)
            return self._handle_submit_evaluation(event, profile, session)

        except Exception as e:
            _LOGGER.error(f"Unexpected error in SessionsApiHandler for user {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def sessions_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global sessions_lambda_handler received event.")
    metrics_manager = MetricsManager("HospitalTraining/Sessions")

    try:
        api_handler = SessionsApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            training_sessions_table=TrainingSessionsTable(get_training_sessions_table_name()),
            modules_table=ModulesTable(get_modules_table_name()),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in sessions_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during SessionsApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
