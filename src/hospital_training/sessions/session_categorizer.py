import logging
import typing
from datetime import datetime, timezone

from hospital_training.models.module_models import ModuleModel
from hospital_training.models.session_models import (
    SessionCategoriesModel,
    SessionInputModel,
    TrainingSessionModel,
)
from hospital_training.models.user_models import ModuleProgressModel, UserProfileModel
from hospital_training.progress.progress_aggregator import is_module_completed
from hospital_training.utils.base_types import HospitalNumber, ModuleId, SessionId
from hospital_training.utils.percentages import to_percentage

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SessionValidationError(ValueError):
    pass


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_session_open(session: TrainingSessionModel, now: datetime) -> bool:
    """Open iff not closed by an admin and `now` lies in [start, end], both ends inclusive."""
    if session.status != "open":
        return False
    now = _as_utc(now)
    return _as_utc(session.startDateTime) <= now <= _as_utc(session.endDateTime)


def categorize_sessions(
    now: datetime,
    sessions: typing.Optional[list[TrainingSessionModel]],
    hospital_number: HospitalNumber,
) -> SessionCategoriesModel:
    """Splits the currently open sessions into ones the user belongs to and ones they can join."""
    open_sessions = [session for session in sessions or [] if is_session_open(session, now)]
    return SessionCategoriesModel(
        assigned=[s for s in open_sessions if hospital_number in s.employeeHospitalNumbers],
        joinable=[s for s in open_sessions if hospital_number not in s.employeeHospitalNumbers],
    )


def _required_module_ids(
    session: TrainingSessionModel,
    modules: typing.Optional[list[ModuleModel]],
) -> list[ModuleId]:
    if modules is None:
        return list(session.moduleIds)
    catalog_ids = {module.id for module in modules}
    return [module_id for module_id in session.moduleIds if module_id in catalog_ids]


def user_session_completion(
    session: TrainingSessionModel,
    progress: typing.Optional[dict[ModuleId, ModuleProgressModel]],
    modules: typing.Optional[list[ModuleModel]] = None,
) -> int:
    """
    Percentage of the session's required modules the user has completed; 0 with no modules.

    When `modules` is given, module ids no longer in the catalog are ignored.
    """
    module_ids = _required_module_ids(session, modules)
    completed = sum(1 for module_id in module_ids if is_module_completed(progress, module_id))
    return to_percentage(completed, len(module_ids))


def cohort_session_completion(
    session: TrainingSessionModel,
    users: list[UserProfileModel],
    modules: typing.Optional[list[ModuleModel]] = None,
) -> int:
    """
    Completed module instances across all members over (members x modules).

    Members are the known users listed on the session. When `modules` is given, module
    ids no longer in the catalog are ignored. 0 when either count is 0.
    """
    members = [user for user in users if user.hospitalNumber in session.employeeHospitalNumbers]
    module_ids = _required_module_ids(session, modules)

    expected = len(members) * len(module_ids)
    if expected == 0:
        return 0

    completed = sum(1 for user in members for module_id in module_ids if is_module_completed(user.progress, module_id))
    return to_percentage(completed, expected)


def validate_session_input(session_input: SessionInputModel) -> None:
    """
    :raises SessionValidationError: if a required field is empty or the window is not forward in time
    """
    if (
        not session_input.name
        or session_input.startDateTime is None
        or session_input.endDateTime is None
        or not session_input.moduleIds
        or not session_input.employeeHospitalNumbers
    ):
        raise SessionValidationError("Please fill in all fields and select at least one module and one employee.")
    if session_input.startDateTime >= session_input.endDateTime:
        raise SessionValidationError("Session start must be before its end.")


def build_session(
    session_id: SessionId,
    session_input: SessionInputModel,
    existing: typing.Optional[TrainingSessionModel] = None,
) -> TrainingSessionModel:
    """Validated session from admin input. Editing an existing session keeps its evaluations."""
    validate_session_input(session_input)
    return TrainingSessionModel(
        id=session_id,
        name=session_input.name,
        startDateTime=session_input.startDateTime,
        endDateTime=session_input.endDateTime,
        moduleIds=session_input.moduleIds,
        employeeHospitalNumbers=session_input.employeeHospitalNumbers,
        status=session_input.status,
        evaluations=dict(existing.evaluations) if existing else {},
    )
