import logging
import typing
from datetime import datetime, timezone

from hospital_training.models.session_models import (
    EvaluationInputModel,
    EvaluationSummaryModel,
    SessionEvaluationModel,
    TrainingSessionModel,
)
from hospital_training.models.user_models import UserProfileModel
from hospital_training.utils.base_types import HospitalNumber, IsoTimestamp
from hospital_training.utils.percentages import round_one_decimal

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class EvaluationValidationError(ValueError):
    pass


LIKERT_QUESTION_KEYS = ("q1", "q2", "q3", "q4", "q5")

EVALUATION_QUESTIONS: dict[str, str] = {
    "q1": "The training clearly explained the key concepts and steps of the procedure/topic.",
    "q2": "The pacing, visuals, and audio of the video supported learning and understanding.",
    "q3": "The guidance, feedback, and supervision during the return demo were adequate and clear.",
    "q4": (
        "The training venue was appropriate for learning and performing the return demonstration "
        "(space, lighting, noise, equipment)."
    ),
    "q5": (
        "Overall, this training session improved my confidence in performing the task or applying "
        "the topic in actual practice."
    ),
}

LIKERT_LABELS: dict[int, str] = {
    1: "Strongly Disagree",
    2: "Disagree",
    3: "Neutral",
    4: "Agree",
    5: "Strongly Agree",
}


def aggregate_evaluations(session: TrainingSessionModel) -> typing.Optional[EvaluationSummaryModel]:
    """
    Per-question means and an overall mean across all five questions, one decimal each.
    Returns None when nobody has submitted an evaluation yet.
    """
    evaluations = list(session.evaluations.values())
    count = len(evaluations)
    if count == 0:
        return None

    totals = {key: sum(getattr(evaluation.scores, key) for evaluation in evaluations) for key in LIKERT_QUESTION_KEYS}
    return EvaluationSummaryModel(
        evaluationCount=count,
        questionAverages={key: round_one_decimal(total / count) for key, total in totals.items()},
        overall=round_one_decimal(sum(totals.values()) / (count * len(LIKERT_QUESTION_KEYS))),
    )


def build_evaluation(
    user: UserProfileModel,
    evaluation_input: EvaluationInputModel,
    now: typing.Optional[datetime] = None,
) -> SessionEvaluationModel:
    return SessionEvaluationModel(
        userId=user.hospitalNumber,
        userName=user.display_name,
        date=IsoTimestamp((now or datetime.now(timezone.utc)).isoformat()),
        scores=evaluation_input.scores,
        feedback=evaluation_input.feedback,
    )


def submit_evaluation(session: TrainingSessionModel, evaluation: SessionEvaluationModel) -> TrainingSessionModel:
    """Returns a copy of the session holding `evaluation`; an earlier one by the same user is replaced."""
    if evaluation.userId in session.evaluations:
        _LOGGER.info(f"Replacing evaluation by {evaluation.userId} for session {session.id}.")
    evaluations = dict(session.evaluations)
    evaluations[evaluation.userId] = evaluation
    return session.model_copy(update={"evaluations": evaluations})


def check_can_evaluate(session: TrainingSessionModel, hospital_number: HospitalNumber) -> None:
    """
    Only members of a session may evaluate it.

    :raises EvaluationValidationError: if `hospital_number` is not on the session
    """
    if hospital_number not in session.employeeHospitalNumbers:
        raise EvaluationValidationError(f"User {hospital_number} is not a member of session {session.id}.")
