import json
import typing
from datetime import datetime, timezone

from hospital_training.models.module_models import ModuleModel, QuestionModel
from hospital_training.models.session_models import TrainingSessionModel
from hospital_training.models.user_models import ModuleProgressModel, UserProfileModel

from test_utils.authorizer import add_authorizer_info

UTC = timezone.utc


def make_question(question_id: str, correct_answer_index: int = 0, option_count: int = 4) -> QuestionModel:
    return QuestionModel(
        id=question_id,
        text=f"Question {question_id}?",
        options=[f"Option {i}" for i in range(option_count)],
        correctAnswerIndex=correct_answer_index,
    )


def make_module(
    module_id: str,
    section: str = "A. Quality Assurance",
    allowed_roles: typing.Optional[list[str]] = None,
    questions: typing.Optional[list[QuestionModel]] = None,
) -> ModuleModel:
    return ModuleModel(
        id=module_id,
        section=section,
        title=f"Module {module_id}",
        description=f"About {module_id}",
        topics=["Topic 1", "Topic 2"],
        allowedRoles=allowed_roles,
        questions=questions,
    )


def make_user(
    hospital_number: str,
    role: str = "Nurse",
    completed: typing.Iterable[str] = (),
    last_name: str = "Santos",
    first_name: str = "Maria",
    division: str = "Nursing Division",
    department: str = "",
) -> UserProfileModel:
    return UserProfileModel(
        firstName=first_name,
        lastName=last_name,
        birthday="1990-01-01",
        hospitalNumber=hospital_number,
        plantillaPosition="Nurse II",
        role=role,
        division=division,
        departmentOrSection=department,
        progress={module_id: ModuleProgressModel(isCompleted=True, highScore=100) for module_id in completed},
    )


def make_session(
    session_id: str = "s1",
    start: datetime = datetime(2026, 3, 1, 8, 0, tzinfo=UTC),
    end: datetime = datetime(2026, 3, 1, 17, 0, tzinfo=UTC),
    module_ids: typing.Optional[list[str]] = None,
    members: typing.Optional[list[str]] = None,
    status: str = "open",
) -> TrainingSessionModel:
    return TrainingSessionModel(
        id=session_id,
        name=f"Session {session_id}",
        startDateTime=start,
        endDateTime=end,
        moduleIds=module_ids if module_ids is not None else ["m1", "m2"],
        employeeHospitalNumbers=members if members is not None else [],
        status=status,
    )


def create_api_event(
    method: str,
    path: str,
    hospital_number: typing.Optional[str] = None,
    body: typing.Optional[dict] = None,
    query: typing.Optional[dict] = None,
) -> dict:
    """Helper to create a mock API Gateway (HTTP API v2) event."""
    event: dict[str, typing.Any] = {
        "requestContext": {"http": {"method": method, "path": path}},
        "body": json.dumps(body) if body is not None else None,
        "queryStringParameters": query,
    }
    if hospital_number is not None:
        add_authorizer_info(event, hospital_number)
    return event
