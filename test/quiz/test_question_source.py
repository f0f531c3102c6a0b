from unittest.mock import Mock

from hospital_training.catalog.modules import FALLBACK_QUESTIONS
from hospital_training.quiz.question_source import select_quiz_questions
from hospital_training.utils.chatbot_utils import ChatBotApiError

from test_utils.factories import make_module, make_question


def test_module_questions_take_priority():
    module = make_module("m1", questions=[make_question("q1")])
    chatbot_wrapper = Mock()
    get_api_key = Mock()

    source, questions = select_quiz_questions(module, chatbot_wrapper, get_api_key)

    assert source == "module"
    assert [q.id for q in questions] == ["q1"]
    chatbot_wrapper.call_quiz_generation_api.assert_not_called()
    get_api_key.assert_not_called()


def test_generated_questions_when_module_has_none():
    module = make_module("m1", questions=[])
    chatbot_wrapper = Mock()
    chatbot_wrapper.call_quiz_generation_api.return_value = [make_question("g1"), make_question("g2")]

    source, questions = select_quiz_questions(module, chatbot_wrapper, lambda: "api-key")

    assert source == "generated"
    assert [q.id for q in questions] == ["g1", "g2"]
    chatbot_wrapper.call_quiz_generation_api.assert_called_once_with(chatbot_api_key="api-key", module=module)


def test_fallback_on_generation_failure():
    chatbot_wrapper = Mock()
    chatbot_wrapper.call_quiz_generation_api.side_effect = ChatBotApiError("boom")

    source, questions = select_quiz_questions(make_module("m1"), chatbot_wrapper, lambda: "api-key")

    assert source == "fallback"
    assert questions == FALLBACK_QUESTIONS


def test_fallback_on_empty_generation():
    chatbot_wrapper = Mock()
    chatbot_wrapper.call_quiz_generation_api.return_value = []

    source, questions = select_quiz_questions(make_module("m1"), chatbot_wrapper, lambda: "api-key")

    assert source == "fallback"
    assert len(questions) == 3


def test_fallback_when_api_key_missing():
    chatbot_wrapper = Mock()
    get_api_key = Mock(side_effect=KeyError("CHATBOT_API_KEY"))

    source, questions = select_quiz_questions(make_module("m1"), chatbot_wrapper, get_api_key)

    assert source == "fallback"
    assert questions
    chatbot_wrapper.call_quiz_generation_api.assert_not_called()
