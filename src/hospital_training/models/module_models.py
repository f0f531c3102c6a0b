import typing

from pydantic import BaseModel, Field, model_validator

from hospital_training.models.user_models import UserRole
from hospital_training.utils.base_types import ModuleId, QuestionId


class QuestionModel(BaseModel):
    id: QuestionId
    text: str = Field(..., min_length=1)
    # Option order is significant: correctAnswerIndex points into it
    options: list[str] = Field(..., min_length=1)
    correctAnswerIndex: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_correct_answer_index(self) -> "QuestionModel":
        if self.correctAnswerIndex >= len(self.options):
            raise ValueError(
                f"correctAnswerIndex {self.correctAnswerIndex} is out of range for {len(self.options)} options"
            )
        return self


class ModuleModel(BaseModel):
    """
    A single training unit: an instructional video plus an optional fixed quiz.

    `section` doubles as the display grouping label and the sort key for the dashboard.
    When `allowedRoles` is missing or empty, visibility falls back to the role-class rules.
    """

    id: ModuleId
    section: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    thumbnailUrl: str = ""
    duration: str = ""
    topics: list[str] = Field(default_factory=list)
    videoUrl: typing.Optional[str] = None
    questions: typing.Optional[list[QuestionModel]] = None
    allowedRoles: typing.Optional[list[UserRole]] = None


class ModuleInputModel(BaseModel):
    """Admin create/update payload. `id` is assigned by the server on create."""

    section: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: str = ""
    thumbnailUrl: str = ""
    duration: str = ""
    topics: list[str] = Field(default_factory=list)
    videoUrl: typing.Optional[str] = None
    questions: list[QuestionModel] = Field(default_factory=list)
    allowedRoles: typing.Optional[list[UserRole]] = None


class RoleAccessUpdateModel(BaseModel):
    # moduleId -> roles permitted to view it
    allowedRoles: dict[ModuleId, list[UserRole]] = Field(default_factory=dict)
    # Modules opened to every role at once
    selectAll: list[ModuleId] = Field(default_factory=list)


class GeneratedQuizModel(BaseModel):
    questions: list[QuestionModel] = Field(default_factory=list)
