import typing

from pydantic import BaseModel, Field

from hospital_training.models.module_models import QuestionModel
from hospital_training.utils.base_types import ModuleId, QuestionId

QuizPhase = typing.Literal["answering", "answered", "result", "no_questions", "closed"]


class QuizResultModel(BaseModel):
    scorePercent: int = Field(..., ge=0, le=100)
    passed: bool
    correctCount: int
    totalQuestions: int
    answers: dict[QuestionId, int]


class QuizQuestionsResponseModel(BaseModel):
    moduleId: ModuleId
    source: typing.Literal["module", "generated", "fallback"]
    questions: list[QuestionModel]


class QuizAttemptRequestModel(BaseModel):
    # questionId -> selected option index, one entry per question
    answers: dict[QuestionId, int]
    # Generated quizzes are not stored, so the client echoes back the set it was served
    questions: typing.Optional[list[QuestionModel]] = None


class QuizCompletionInputModel(BaseModel):
    """Client-scored completion, for quizzes the server did not grade itself."""

    moduleId: ModuleId
    score: int = Field(..., ge=0, le=100)
    answers: dict[QuestionId, int] = Field(default_factory=dict)
