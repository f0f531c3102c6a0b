import logging
import typing

from hospital_training.catalog.modules import PASSING_SCORE
from hospital_training.models.module_models import QuestionModel
from hospital_training.models.quiz_models import QuizPhase, QuizResultModel
from hospital_training.utils.base_types import QuestionId
from hospital_training.utils.percentages import to_percentage

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class QuizStateError(ValueError):
    pass


class QuizEngine:
    """
    Linear, one-question-at-a-time quiz over a fixed ordered question list.

    answering(i) --select--> answering(i)      choose or change an option
    answering(i) --submit--> answered(i)       lock in the answer, reveal correctness
    answered(i)  --next----> answering(i + 1)  or result after the last question
    result       --retake--> answering(0)      only after a failed attempt
    result       --finish--> closed            hands (score, answers) to the caller

    An empty question list puts the engine in `no_questions`, where the only action is
    `exit`; no score is ever computed for it.
    """

    def __init__(self, questions: typing.Optional[list[QuestionModel]]) -> None:
        self._questions: list[QuestionModel] = list(questions or [])
        self._reset()

    def _reset(self) -> None:
        self._index = 0
        self._selected_option: typing.Optional[int] = None
        self._correct_count = 0
        self._answers: dict[QuestionId, int] = {}
        self._phase: QuizPhase = "answering" if self._questions else "no_questions"

    def _require_phase(self, *phases: QuizPhase) -> None:
        if self._phase not in phases:
            raise QuizStateError(f"Action not allowed while quiz is '{self._phase}' (expected {', '.join(phases)}).")

    @property
    def phase(self) -> QuizPhase:
        return self._phase

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_questions(self) -> int:
        return len(self._questions)

    @property
    def current_question(self) -> typing.Optional[QuestionModel]:
        if self._phase in ("answering", "answered"):
            return self._questions[self._index]
        return None

    @property
    def selected_option(self) -> typing.Optional[int]:
        return self._selected_option

    @property
    def correct_count(self) -> int:
        return self._correct_count

    @property
    def answers(self) -> dict[QuestionId, int]:
        return dict(self._answers)

    def select(self, option_index: int) -> None:
        self._require_phase("answering")
        question = self._questions[self._index]
        if not 0 <= option_index < len(question.options):
            raise QuizStateError(
                f"Option {option_index} is out of range for question '{question.id}' "
                f"with {len(question.options)} options."
            )
        self._selected_option = option_index

    def submit(self) -> bool:
        """Locks in the selected option and returns whether it was correct."""
        self._require_phase("answering")
        if self._selected_option is None:
            raise QuizStateError("Select an option before submitting.")

        question = self._questions[self._index]
        is_correct = self._selected_option == question.correctAnswerIndex
        if is_correct:
            self._correct_count += 1
        self._answers[question.id] = self._selected_option
        self._phase = "answered"
        return is_correct

    def next(self) -> None:
        self._require_phase("answered")
        if self._index < len(self._questions) - 1:
            self._index += 1
            self._selected_option = None
            self._phase = "answering"
        else:
            self._phase = "result"

    @property
    def result(self) -> QuizResultModel:
        self._require_phase("result")
        score = to_percentage(self._correct_count, len(self._questions))
        return QuizResultModel(
            scorePercent=score,
            passed=score >= PASSING_SCORE,
            correctCount=self._correct_count,
            totalQuestions=len(self._questions),
            answers=dict(self._answers),
        )

    def retake(self) -> None:
        """Discards the failed attempt and starts again from the first question."""
        self._require_phase("result")
        if self.result.passed:
            raise QuizStateError("A passed quiz cannot be retaken in the same sitting.")
        _LOGGER.info(f"Quiz retake after scoring {self.result.scorePercent}%.")
        self._reset()

    def finish(self) -> QuizResultModel:
        """Closes the sitting and returns the result, passed or not."""
        result = self.result
        self._phase = "closed"
        return result

    def exit(self) -> None:
        self._require_phase("no_questions")
        self._phase = "closed"


def grade_answers(
    questions: typing.Optional[list[QuestionModel]],
    answers: dict[QuestionId, int],
) -> QuizResultModel:
    """
    Replays a complete answer map through the engine, in question order.

    :raises QuizStateError: if there are no questions, an answer is missing, or an option is out of range
    """
    engine = QuizEngine(questions)
    if engine.phase == "no_questions":
        raise QuizStateError("Quiz has no questions to grade.")

    while engine.phase != "result":
        question = engine.current_question
        if question is None:
            raise QuizStateError(f"No current question while in phase '{engine.phase}'.")
        if question.id not in answers:
            raise QuizStateError(f"Missing answer for question '{question.id}'.")
        engine.select(answers[question.id])
        engine.submit()
        engine.next()

    return engine.finish()
