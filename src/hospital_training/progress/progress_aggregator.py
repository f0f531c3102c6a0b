import logging
import typing
from datetime import datetime, timezone

from hospital_training.access.role_access import filter_modules_by_allowed_roles
from hospital_training.catalog.modules import PASSING_SCORE
from hospital_training.models.module_models import ModuleModel
from hospital_training.models.user_models import (
    LocalProgressSnapshotModel,
    ModuleProgressModel,
    ProgressSummaryModel,
    QuizAttemptModel,
    UserProfileModel,
)
from hospital_training.utils.base_types import IsoTimestamp, ModuleId, QuestionId
from hospital_training.utils.percentages import round_half_up, to_percentage

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


def is_module_completed(
    progress: typing.Optional[dict[ModuleId, ModuleProgressModel]],
    module_id: ModuleId,
) -> bool:
    if not progress:
        return False
    record = progress.get(module_id)
    return bool(record and record.isCompleted)


def compute_progress(
    progress: typing.Optional[dict[ModuleId, ModuleProgressModel]],
    visible_modules: typing.Optional[list[ModuleModel]],
) -> ProgressSummaryModel:
    """
    Completed/total/percentage over the modules the user can see.
    Missing progress records count as not started.
    """
    modules = visible_modules or []
    completed_count = sum(1 for module in modules if is_module_completed(progress, module.id))
    total = len(modules)
    return ProgressSummaryModel(
        completedCount=completed_count,
        total=total,
        percentage=to_percentage(completed_count, total),
    )


def get_user_progress(user: UserProfileModel, modules: list[ModuleModel]) -> ProgressSummaryModel:
    """Progress against the modules the admin audit view considers accessible to the user."""
    return compute_progress(user.progress, filter_modules_by_allowed_roles(user.role, modules))


def aggregate_stats(users: list[UserProfileModel], modules: list[ModuleModel]) -> int:
    """
    Mean of each user's own percentage, rounded. Every user weighs the same no matter
    how many modules they are eligible for.
    """
    if not users:
        return 0
    total_percentage = sum(get_user_progress(user, modules).percentage for user in users)
    return round_half_up(total_percentage / len(users))


def filter_users(
    users: list[UserProfileModel],
    *,
    search: str = "",
    division: str = "",
    department: str = "",
    role: str = "",
) -> list[UserProfileModel]:
    """
    Admin user list filters. `search` matches first or last name case-insensitively, or
    a hospital number substring. Empty filters match everything.
    """
    needle = search.strip().lower()

    def _matches(user: UserProfileModel) -> bool:
        if needle and not (
            needle in user.lastName.lower() or needle in user.firstName.lower() or needle in user.hospitalNumber
        ):
            return False
        if division and user.division != division:
            return False
        if department and user.departmentOrSection != department:
            return False
        if role and user.role != role:
            return False
        return True

    return [user for user in users if _matches(user)]


def apply_quiz_result(
    previous: typing.Optional[ModuleProgressModel],
    score: int,
    answers: typing.Optional[dict[QuestionId, int]],
    now: typing.Optional[datetime] = None,
) -> ModuleProgressModel:
    """
    The single write path for module progress after a quiz.

    High score only ever goes up and completion never reverts. The latest answers are
    always kept for review, and every attempt is appended to the history.
    """
    current = previous or ModuleProgressModel()
    answers = dict(answers or {})
    timestamp = IsoTimestamp((now or datetime.now(timezone.utc)).isoformat())
    passed = score >= PASSING_SCORE

    attempts = list(current.attempts or [])
    attempts.append(QuizAttemptModel(date=timestamp, score=score, answers=answers))

    updated = ModuleProgressModel(
        isUnlocked=True,
        isCompleted=current.isCompleted or passed,
        highScore=max(current.highScore, score),
        lastAttemptAnswers=answers,
        attempts=attempts,
    )
    _LOGGER.info(
        f"Quiz result applied: score={score}, passed={passed}, "
        f"highScore {current.highScore}->{updated.highScore}, attempts={len(attempts)}"
    )
    return updated


def reconcile_progress(
    backend_profile: typing.Optional[UserProfileModel],
    local_snapshot: typing.Optional[LocalProgressSnapshotModel],
) -> dict[ModuleId, ModuleProgressModel]:
    """
    The backend profile is authoritative whenever one is loaded. The local snapshot is
    only a stand-in before login or before the first sync.
    """
    if backend_profile is not None:
        return dict(backend_profile.progress)
    if local_snapshot is not None:
        return dict(local_snapshot.progress)
    return {}
