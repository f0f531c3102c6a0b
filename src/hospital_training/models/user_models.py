import typing

from pydantic import BaseModel, ConfigDict, Field, computed_field

from hospital_training.utils.base_types import (
    HospitalNumber,
    IsoTimestamp,
    ModuleId,
    QuestionId,
)

UserRole = typing.Literal[
    "QA Admin",
    "Head / Assistant Head",
    "Doctor",
    "Nurse",
    "Nurse (High-risk Area)",
    "Specialized Nurse",
    "Other Clinical (Med Tech, Rad Tech, etc)",
    "Medical Intern",
    "Non-clinical",
    "Others",
]

USER_ROLES: tuple[str, ...] = typing.get_args(UserRole)


class QuizAttemptModel(BaseModel):
    date: IsoTimestamp
    score: int = Field(..., ge=0, le=100)
    # questionId -> selected option index
    answers: dict[QuestionId, int] = Field(default_factory=dict)


class ModuleProgressModel(BaseModel):
    """
    Per (user, module) progress record.

    `isCompleted` is sticky and `highScore` never decreases; both are only ever
    changed through `progress_aggregator.apply_quiz_result`.
    """

    isUnlocked: bool = True
    isCompleted: bool = False
    highScore: int = Field(default=0, ge=0, le=100)
    lastAttemptAnswers: typing.Optional[dict[QuestionId, int]] = None
    attempts: typing.Optional[list[QuizAttemptModel]] = None


class RegistrationDataModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    firstName: str = Field(..., min_length=1)
    lastName: str = Field(..., min_length=1)
    middleInitial: str = ""
    birthday: str = Field(..., min_length=1)
    # Unique per user; also the login credential
    hospitalNumber: HospitalNumber = Field(..., min_length=1)
    plantillaPosition: str = Field(..., min_length=1)
    role: UserRole
    division: str = Field(..., min_length=1)
    departmentOrSection: str = ""


class UserProfileModel(RegistrationDataModel):
    progress: dict[ModuleId, ModuleProgressModel] = Field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return f"{self.lastName}, {self.firstName}"


class UserUpdateModel(BaseModel):
    """Partial profile update; fields left as None are not written."""

    model_config = ConfigDict(str_strip_whitespace=True)

    firstName: typing.Optional[str] = Field(default=None, min_length=1)
    lastName: typing.Optional[str] = Field(default=None, min_length=1)
    middleInitial: typing.Optional[str] = None
    birthday: typing.Optional[str] = None
    plantillaPosition: typing.Optional[str] = None
    role: typing.Optional[UserRole] = None
    division: typing.Optional[str] = None
    departmentOrSection: typing.Optional[str] = None


class LoginRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    lastName: str = Field(..., min_length=1)
    hospitalNumber: HospitalNumber = Field(..., min_length=1)


class LocalProgressSnapshotModel(BaseModel):
    """Client-local cache of progress, used only before a backend profile is loaded."""

    progress: dict[ModuleId, ModuleProgressModel] = Field(default_factory=dict)
    activeModuleId: typing.Optional[ModuleId] = None


class ProgressSummaryModel(BaseModel):
    completedCount: int
    total: int
    percentage: int = Field(..., ge=0, le=100)

    @computed_field
    @property
    def isAllCompleted(self) -> bool:
        return self.total > 0 and self.completedCount == self.total


class DeleteUserRequestModel(BaseModel):
    # Delete-confirmation password, re-entered by the admin
    password: str = Field(..., min_length=1)
