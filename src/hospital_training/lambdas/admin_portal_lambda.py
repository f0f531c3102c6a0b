import hmac
import logging
import typing
from datetime import datetime, timezone

from pydantic import ValidationError

from hospital_training.access.role_access import (
    ADMIN_ROLE,
    apply_role_access,
    find_policy_disagreements,
)
from hospital_training.catalog.modules import get_module
from hospital_training.catalog.org_structure import RegistrationError, validate_placement
from hospital_training.cloudwatch.metrics import MetricsManager
from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.secrets_table import SecretsTable
from hospital_training.dynamodb.training_sessions_table import TrainingSessionsTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.evaluations.evaluation_aggregator import EVALUATION_QUESTIONS, aggregate_evaluations
from hospital_training.models.module_models import ModuleInputModel, ModuleModel, RoleAccessUpdateModel
from hospital_training.models.session_models import SessionInputModel, TrainingSessionModel
from hospital_training.models.user_models import (
    USER_ROLES,
    DeleteUserRequestModel,
    RegistrationDataModel,
    UserProfileModel,
    UserUpdateModel,
)
from hospital_training.progress.progress_aggregator import aggregate_stats, filter_users, get_user_progress
from hospital_training.sessions.session_categorizer import (
    SessionValidationError,
    build_session,
    cohort_session_completion,
    user_session_completion,
)
from hospital_training.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_method,
    get_path_parts,
    get_query_string_parameters,
    get_user_id_from_event,
)
from hospital_training.utils.aws_env_vars import (
    get_admin_hospital_numbers,
    get_modules_table_name,
    get_secrets_table_name,
    get_training_sessions_table_name,
    get_user_profile_table_name,
)
from hospital_training.utils.base_types import HospitalNumber, ModuleId, SessionId
from hospital_training.utils.input_validator import InputValidator, SuspiciousInputError

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AdminPortalApiHandler:
    """
    QA Admin routes under /admin: user management and audit, module catalog and role
    access, and training sessions with their cohort statistics.
    """

    def __init__(
        self,
        user_profile_table: UserProfileTable,
        modules_table: ModulesTable,
        training_sessions_table: TrainingSessionsTable,
        secrets_table: SecretsTable,
        metrics_manager: MetricsManager,
        admin_hospital_numbers: frozenset[str] = frozenset(),
        now_provider: typing.Callable[[], datetime] = _utc_now,
    ):
        self.user_profile_table = user_profile_table
        self.modules_table = modules_table
        self.training_sessions_table = training_sessions_table
        self.secrets_table = secrets_table
        self.metrics_manager = metrics_manager
        self.admin_hospital_numbers = admin_hospital_numbers
        self.now_provider = now_provider

    def _is_admin(self, hospital_number: HospitalNumber) -> bool:
        if hospital_number in self.admin_hospital_numbers:
            return True
        profile = self.user_profile_table.get_profile(hospital_number)
        return profile is not None and profile.role == ADMIN_ROLE

    def _epoch_millis(self) -> int:
        return int(self.now_provider().timestamp() * 1000)

    # Users

    def _handle_list_users(self, event: dict) -> dict:
        query_params = get_query_string_parameters(event)
        users = filter_users(
            self.user_profile_table.fetch_users(),
            search=query_params.get("search", ""),
            division=query_params.get("division", ""),
            department=query_params.get("department", ""),
            role=query_params.get("role", ""),
        )
        modules = self.modules_table.fetch_catalog()

        user_rows = []
        for user in sorted(users, key=lambda u: (u.lastName.lower(), u.firstName.lower())):
            row = user.model_dump(mode="json", exclude_none=True)
            row["progressSummary"] = get_user_progress(user, modules).model_dump()
            user_rows.append(row)

        _LOGGER.info(f"Admin user list: {len(user_rows)} users match {dict(query_params)}")
        return format_lambda_response(
            200,
            {"users": user_rows, "averageCompletion": aggregate_stats(users, modules)},
            event=event,
        )

    def _handle_create_user(self, event: dict) -> dict:
        try:
            registration = RegistrationDataModel.model_validate_json(event.get("body") or "{}")
            validate_placement(registration.division, registration.departmentOrSection)
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except RegistrationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        profile = self.user_profile_table.register_user(registration)
        if profile is None:
            return create_error_response(
                ErrorCode.CONFLICT,
                f"Hospital number {registration.hospitalNumber} is already registered.",
                event=event,
            )
        return format_lambda_response(201, profile.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_update_user(self, event: dict, hospital_number: HospitalNumber) -> dict:
        existing = self.user_profile_table.get_profile(hospital_number)
        if existing is None:
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"User {hospital_number} not found.", event=event
            )

        try:
            update = UserUpdateModel.model_validate_json(event.get("body") or "{}")
            if update.division is not None or update.departmentOrSection is not None:
                merged = existing.model_copy(update=update.model_dump(exclude_none=True))
                validate_placement(merged.division, merged.departmentOrSection)
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except RegistrationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        updated = self.user_profile_table.update_user(hospital_number, update)
        if updated is None:
            return create_error_response(ErrorCode.VALIDATION_ERROR, "No changes were saved.", event=event)
        return format_lambda_response(200, updated.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_delete_user(self, event: dict, hospital_number: HospitalNumber) -> dict:
        try:
            delete_request = DeleteUserRequestModel.model_validate_json(event.get("body") or "{}")
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)

        expected_password = self.secrets_table.get_admin_delete_password()
        if not hmac.compare_digest(delete_request.password.encode("utf-8"), expected_password.encode("utf-8")):
            _LOGGER.warning(f"Rejected deletion of {hospital_number}: wrong confirmation password.")
            return create_error_response(ErrorCode.AUTHORIZATION_FAILED, "Incorrect password.", event=event)

        if not self.user_profile_table.delete_user(hospital_number):
            return create_error_response(
                ErrorCode.RESOURCE_NOT_FOUND, f"User {hospital_number} not found.", event=event
            )
        self.metrics_manager.put_metric("UserDeleted", 1)
        return format_lambda_response(200, {"message": f"User {hospital_number} deleted."}, event=event)

    # Modules

    def _handle_list_modules(self, event: dict) -> dict:
        modules = self.modules_table.fetch_catalog()
        return format_lambda_response(
            200,
            {
                "modules": [module.model_dump(mode="json", exclude_none=True) for module in modules],
                "roles": list(USER_ROLES),
            },
            event=event,
        )

    def _parse_module_input(self, event: dict) -> ModuleInputModel:
        """
        :raises ValidationError: for a malformed body
        :raises SuspiciousInputError: for free text outside the content limits
        """
        module_input = ModuleInputModel.model_validate_json(event.get("body") or "{}")
        InputValidator.validate_module_content(
            module_input.title, module_input.section, module_input.description, module_input.topics
        )
        return module_input

    def _handle_save_module(self, event: dict, module_id: typing.Optional[ModuleId]) -> dict:
        try:
            module_input = self._parse_module_input(event)
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except SuspiciousInputError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        catalog = self.modules_table.ensure_seeded()
        if module_id is None:
            module_id = ModuleId(f"m_custom_{self._epoch_millis()}")
            status_code = 201
        elif get_module(module_id, catalog) is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Module {module_id} not found.", event=event)
        else:
            status_code = 200

        module = ModuleModel(id=module_id, **module_input.model_dump())
        self.modules_table.save_module(module)
        return format_lambda_response(status_code, module.model_dump(mode="json", exclude_none=True), event=event)

    def _handle_delete_module(self, event: dict, module_id: ModuleId) -> dict:
        self.modules_table.ensure_seeded()
        if not self.modules_table.delete_module(module_id):
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Module {module_id} not found.", event=event)
        return format_lambda_response(200, {"message": f"Module {module_id} deleted."}, event=event)

    def _handle_update_role_access(self, event: dict) -> dict:
        try:
            update = RoleAccessUpdateModel.model_validate_json(event.get("body") or "{}")
            changed_modules = apply_role_access(self.modules_table.ensure_seeded(), update)
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except ValueError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        for module in changed_modules:
            self.modules_table.save_module(module)
        _LOGGER.info(f"Updated role access for {len(changed_modules)} modules.")
        return format_lambda_response(
            200,
            {"modules": [module.model_dump(mode="json", exclude_none=True) for module in changed_modules]},
            event=event,
        )

    def _handle_get_policy_disagreements(self, event: dict) -> dict:
        modules = self.modules_table.fetch_catalog()
        disagreements = {role: find_policy_disagreements(role, modules) for role in USER_ROLES}
        return format_lambda_response(
            200,
            {"disagreements": {role: ids for role, ids in disagreements.items() if ids}},
            event=event,
        )

    # Sessions

    def _dump_session_for_admin(
        self,
        session: TrainingSessionModel,
        users: list[UserProfileModel],
        modules: list[ModuleModel],
    ) -> dict:
        session_dict = session.model_dump(mode="json")
        session_dict["cohortCompletion"] = cohort_session_completion(session, users, modules)
        session_dict["memberCompletion"] = {
            user.hospitalNumber: user_session_completion(session, user.progress, modules)
            for user in users
            if user.hospitalNumber in session.employeeHospitalNumbers
        }
        summary = aggregate_evaluations(session)
        session_dict["evaluationSummary"] = summary.model_dump() if summary else None
        return session_dict

    def _handle_list_sessions(self, event: dict) -> dict:
        users = self.user_profile_table.fetch_users()
        modules = self.modules_table.fetch_catalog()
        sessions = sorted(self.training_sessions_table.list_sessions(), key=lambda s: s.startDateTime, reverse=True)
        return format_lambda_response(
            200,
            {"sessions": [self._dump_session_for_admin(session, users, modules) for session in sessions]},
            event=event,
        )

    def _handle_save_session(self, event: dict, session_id: typing.Optional[SessionId]) -> dict:
        existing = None
        if session_id is not None:
            existing = self.training_sessions_table.get_session(session_id)
            if existing is None:
                return create_error_response(
                    ErrorCode.RESOURCE_NOT_FOUND, f"Session {session_id} not found.", event=event
                )

        try:
            session_input = SessionInputModel.model_validate_json(event.get("body") or "{}")
            session = build_session(
                session_id or SessionId(f"s_{self._epoch_millis()}"),
                session_input,
                existing,
            )
        except ValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, details=e.errors(), event=event)
        except SessionValidationError as e:
            return create_error_response(ErrorCode.VALIDATION_ERROR, str(e), event=event)

        self.training_sessions_table.save_session(session)
        return format_lambda_response(201 if existing is None else 200, session.model_dump(mode="json"), event=event)

    def _handle_delete_session(self, event: dict, session_id: SessionId) -> dict:
        if not self.training_sessions_table.delete_session(session_id):
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Session {session_id} not found.", event=event)
        return format_lambda_response(200, {"message": f"Session {session_id} deleted."}, event=event)

    def _handle_get_session_evaluations(self, event: dict, session_id: SessionId) -> dict:
        session = self.training_sessions_table.get_session(session_id)
        if session is None:
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, f"Session {session_id} not found.", event=event)

        summary = aggregate_evaluations(session)
        evaluations = sorted(session.evaluations.values(), key=lambda evaluation: evaluation.date, reverse=True)
        return format_lambda_response(
            200,
            {
                "sessionId": session.id,
                "questions": EVALUATION_QUESTIONS,
                "summary": summary.model_dump() if summary else None,
                "evaluations": [evaluation.model_dump(mode="json") for evaluation in evaluations],
            },
            event=event,
        )

    def _route(self, event: dict, http_method: str, path_parts: list[str]) -> dict:
        resource = path_parts[1] if len(path_parts) > 1 else ""
        item_id = path_parts[2] if len(path_parts) > 2 else None

        if resource == "users":
            if len(path_parts) == 2 and http_method == "GET":
                return self._handle_list_users(event)
            if len(path_parts) == 2 and http_method == "POST":
                return self._handle_create_user(event)
            if len(path_parts) == 3 and http_method == "PUT":
                return self._handle_update_user(event, HospitalNumber(item_id))
            if len(path_parts) == 3 and http_method == "DELETE":
                return self._handle_delete_user(event, HospitalNumber(item_id))

        elif resource == "modules":
            if len(path_parts) == 2 and http_method == "GET":
                return self._handle_list_modules(event)
            if len(path_parts) == 2 and http_method == "POST":
                return self._handle_save_module(event, None)
            if len(path_parts) == 3 and http_method == "PUT":
                return self._handle_save_module(event, ModuleId(item_id))
            if len(path_parts) == 3 and http_method == "DELETE":
                return self._handle_delete_module(event, ModuleId(item_id))

        elif resource == "role-access" and len(path_parts) == 2 and http_method == "PUT":
            return self._handle_update_role_access(event)

        elif resource == "policy-disagreements" and len(path_parts) == 2 and http_method == "GET":
            return self._handle_get_policy_disagreements(event)

        elif resource == "sessions":
            if len(path_parts) == 2 and http_method == "GET":
                return self._handle_list_sessions(event)
            if len(path_parts) == 2 and http_method == "POST":
                return self._handle_save_session(event, None)
            if len(path_parts) == 3 and http_method == "PUT":
                return self._handle_save_session(event, SessionId(item_id))
            if len(path_parts) == 3 and http_method == "DELETE":
                return self._handle_delete_session(event, SessionId(item_id))
            if len(path_parts) == 4 and path_parts[3] == "evaluations" and http_method == "GET":
                return self._handle_get_session_evaluations(event, SessionId(item_id))

        _LOGGER.warning(f"Unsupported path or method for Admin Portal: {http_method} /{'/'.join(path_parts)}")
        return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

    def handle(self, event: dict) -> dict:
        user_id = get_user_id_from_event(event)
        if not user_id:
            _LOGGER.warning("Unauthorized: No user_id found in event.")
            return create_error_response(ErrorCode.AUTHENTICATION_FAILED, event=event)

        http_method = get_method(event).upper()
        path_parts = get_path_parts(event)
        _LOGGER.info(f"Received method: {http_method}, path: /{'/'.join(path_parts)}, admin: {user_id}")

        if not path_parts or path_parts[0] != "admin":
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        try:
            if not self._is_admin(user_id):
                _LOGGER.warning(f"Forbidden: {user_id} is not a QA Admin.")
                return create_error_response(ErrorCode.AUTHORIZATION_FAILED, event=event)
            return self._route(event, http_method, path_parts)

        except KeyError as ke:
            _LOGGER.error(f"Missing secret while handling admin request: {ke}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error", event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in AdminPortalApiHandler for {user_id}: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def admin_portal_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    _LOGGER.debug("Global admin_portal_lambda_handler received event.")
    metrics_manager = MetricsManager("HospitalTraining/AdminPortal")

    try:
        api_handler = AdminPortalApiHandler(
            user_profile_table=UserProfileTable(get_user_profile_table_name()),
            modules_table=ModulesTable(get_modules_table_name()),
            training_sessions_table=TrainingSessionsTable(get_training_sessions_table_name()),
            secrets_table=SecretsTable(get_secrets_table_name()),
            metrics_manager=metrics_manager,
            admin_hospital_numbers=get_admin_hospital_numbers(),
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in admin_portal_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Error during AdminPortalApiHandler: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
