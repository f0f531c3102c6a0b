import logging
import typing

from hospital_training.catalog.modules import FALLBACK_QUESTIONS
from hospital_training.models.module_models import ModuleModel, QuestionModel
from hospital_training.utils.chatbot_utils import ChatBotApiError, ChatBotWrapper

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

QuestionSource = typing.Literal["module", "generated", "fallback"]


def select_quiz_questions(
    module: ModuleModel,
    chatbot_wrapper: ChatBotWrapper,
    get_api_key: typing.Callable[[], str],
) -> tuple[QuestionSource, list[QuestionModel]]:
    """
    The module's own questions when it has any, otherwise a generated quiz. A missing API
    key, a failed call or an empty result all degrade quietly to the fallback pool, so the
    returned list is never empty.
    """
    if module.questions:
        return "module", list(module.questions)

    try:
        api_key = get_api_key()
    except KeyError as e:
        _LOGGER.warning(f"No quiz-generation API key available ({e}). Using fallback questions.")
        return "fallback", list(FALLBACK_QUESTIONS)

    try:
        questions = chatbot_wrapper.call_quiz_generation_api(chatbot_api_key=api_key, module=module)
    except (ChatBotApiError, ValueError) as e:
        _LOGGER.error(f"Failed to generate quiz for module {module.id}: {e}")
        return "fallback", list(FALLBACK_QUESTIONS)

    if not questions:
        return "fallback", list(FALLBACK_QUESTIONS)
    return "generated", questions
