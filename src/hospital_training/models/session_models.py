import typing
from datetime import datetime, timezone

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from hospital_training.utils.base_types import (
    HospitalNumber,
    IsoTimestamp,
    ModuleId,
    SessionId,
)

SessionStatus = typing.Literal["open", "closed"]


def _assume_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Naive timestamps are read as UTC so session windows always compare
UtcDatetime = typing.Annotated[datetime, AfterValidator(_assume_utc)]


class EvaluationScoresModel(BaseModel):
    q1: int = Field(..., ge=1, le=5)
    q2: int = Field(..., ge=1, le=5)
    q3: int = Field(..., ge=1, le=5)
    q4: int = Field(..., ge=1, le=5)
    q5: int = Field(..., ge=1, le=5)


class EvaluationInputModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    scores: EvaluationScoresModel
    feedback: str = Field(..., min_length=1)


class SessionEvaluationModel(BaseModel):
    userId: HospitalNumber
    userName: str
    date: IsoTimestamp
    scores: EvaluationScoresModel
    feedback: str = Field(..., min_length=1)


class TrainingSessionModel(BaseModel):
    """
    A time-boxed cohort assignment of modules to employees.

    `status` is an admin override independent of the [startDateTime, endDateTime] window.
    `evaluations` is keyed by the submitter's hospital number, so a resubmission replaces.
    """

    id: SessionId
    name: str = Field(..., min_length=1)
    startDateTime: UtcDatetime
    endDateTime: UtcDatetime
    moduleIds: list[ModuleId] = Field(default_factory=list)
    employeeHospitalNumbers: list[HospitalNumber] = Field(default_factory=list)
    status: SessionStatus = "open"
    evaluations: dict[HospitalNumber, SessionEvaluationModel] = Field(default_factory=dict)


class SessionInputModel(BaseModel):
    """
    Admin create/update payload. Every field is optional here so that completeness is
    reported by `session_categorizer.validate_session_input` with a single message.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: typing.Optional[str] = None
    startDateTime: typing.Optional[UtcDatetime] = None
    endDateTime: typing.Optional[UtcDatetime] = None
    moduleIds: list[ModuleId] = Field(default_factory=list)
    employeeHospitalNumbers: list[HospitalNumber] = Field(default_factory=list)
    status: SessionStatus = "open"


class SessionCategoriesModel(BaseModel):
    assigned: list[TrainingSessionModel] = Field(default_factory=list)
    joinable: list[TrainingSessionModel] = Field(default_factory=list)


class EvaluationSummaryModel(BaseModel):
    evaluationCount: int
    # q1..q5 -> mean score, one decimal place
    questionAverages: dict[str, float]
    overall: float
