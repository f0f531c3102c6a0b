import json
import typing
from unittest.mock import Mock

from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.lambdas.user_progress_lambda import UserProgressApiHandler

from test_utils.factories import create_api_event, make_module, make_question, make_user

CATALOG = [
    make_module("m_qa_1", section="A. Quality Assurance", questions=[make_question("q1")]),
    make_module("m1", section="B. Infection Prevention and Control"),
    make_module("m_ps_2", section="C. Patient Safety and Risk Management"),
    make_module("m_ps_1", section="C. Patient Safety and Risk Management"),
]


def create_user_progress_api_handler(
    user_profile_table: typing.Optional[Mock] = None,
    modules_table: typing.Optional[Mock] = None,
    metrics_manager: typing.Optional[Mock] = None,
) -> UserProgressApiHandler:
    if modules_table is None:
        modules_table = Mock(spec=ModulesTable)
        modules_table.fetch_catalog.return_value = CATALOG
    handler = UserProgressApiHandler(
        user_profile_table=user_profile_table or Mock(spec=UserProfileTable),
        modules_table=modules_table,
        metrics_manager=metrics_manager or Mock(),
    )
    assert handler.modules_table == modules_table
    return handler


def _profile_table_with(profile) -> Mock:
    user_profile_table = Mock(spec=UserProfileTable)
    user_profile_table.get_profile.return_value = profile
    user_profile_table.update_module_progress.return_value = True
    return user_profile_table


def test_handler_initialization():
    create_user_progress_api_handler()


def test_handle_unauthorized_access():
    """
    Test response when user_id is not found in the event.
    """
    event = {"requestContext": {"http": {"method": "GET", "path": "/progress"}}}

    handler = create_user_progress_api_handler()
    response = handler.handle(event)

    assert response["statusCode"] == 401
    assert "User identification failed" in json.loads(response["body"])["message"]


def test_handle_unsupported_http_method():
    event = create_api_event("DELETE", "/progress", hospital_number="H-1001")

    handler = create_user_progress_api_handler()
    response = handler.handle(event)

    assert response["statusCode"] == 404
    assert "Resource not found or method not allowed" in json.loads(response["body"])["message"]


def test_handle_missing_profile():
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(None))
    response = handler.handle(create_api_event("GET", "/progress", hospital_number="H-404"))

    assert response["statusCode"] == 404
    assert json.loads(response["body"])["message"] == "User profile not found."


def test_handle_get_dashboard_for_nurse():
    profile = make_user("H-1001", role="Nurse", completed=["m1"])
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(profile))

    response = handler.handle(create_api_event("GET", "/progress", hospital_number="H-1001"))

    assert response["statusCode"] == 200
    body = json.loads(response["body"])
    assert body["effectiveRole"] == "Nurse"
    assert [s["section"] for s in body["sections"]] == [
        "A. Quality Assurance",
        "B. Infection Prevention and Control",
        "C. Patient Safety and Risk Management",
    ]
    # Risk management is not on the clinical dashboard
    assert [m["id"] for m in body["sections"][2]["modules"]] == ["m_ps_2"]
    # Answer keys never reach the learner dashboard
    assert "questions" not in body["sections"][0]["modules"][0]
    assert body["summary"] == {"completedCount": 1, "total": 3, "percentage": 33, "isAllCompleted": False}


def test_handle_get_dashboard_for_non_clinical():
    profile = make_user("H-1002", role="Non-clinical", completed=["m_qa_1", "m1"])
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(profile))

    response = handler.handle(create_api_event("GET", "/progress", hospital_number="H-1002"))

    body = json.loads(response["body"])
    assert body["summary"]["isAllCompleted"] is True
    assert body["summary"]["percentage"] == 100


def test_handle_get_dashboard_admin_preview():
    profile = make_user("ADMIN-1", role="QA Admin")
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(profile))

    event = create_api_event("GET", "/progress", hospital_number="ADMIN-1", query={"previewRole": "Medical Intern"})
    body = json.loads(handler.handle(event)["body"])

    assert body["effectiveRole"] == "Medical Intern"
    module_ids = [m["id"] for section in body["sections"] for m in section["modules"]]
    assert module_ids == ["m_qa_1", "m1", "m_ps_2"]


def test_handle_get_dashboard_preview_ignored_for_learner():
    profile = make_user("H-1001", role="Non-clinical")
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(profile))

    event = create_api_event("GET", "/progress", hospital_number="H-1001", query={"previewRole": "QA Admin"})
    body = json.loads(handler.handle(event)["body"])

    assert body["effectiveRole"] == "Non-clinical"


def test_handle_put_quiz_completion_passed():
    profile = make_user("H-1001", role="Nurse")
    user_profile_table = _profile_table_with(profile)
    metrics_manager = Mock()
    handler = create_user_progress_api_handler(user_profile_table=user_profile_table, metrics_manager=metrics_manager)

    body = {"moduleId": "m1", "score": 90, "answers": {"q1": 0}}
    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001", body=body))

    assert response["statusCode"] == 200
    args = user_profile_table.update_module_progress.call_args.args
    assert args[0] == "H-1001"
    assert args[1] == "m1"
    assert args[2].isCompleted is True
    assert args[2].highScore == 90
    assert json.loads(response["body"])["summary"]["completedCount"] == 1
    metrics_manager.put_metric.assert_called_once_with("QuizPassed", 1)


def test_handle_put_quiz_completion_keeps_high_score():
    profile = make_user("H-1001", role="Nurse", completed=["m1"])
    user_profile_table = _profile_table_with(profile)
    metrics_manager = Mock()
    handler = create_user_progress_api_handler(user_profile_table=user_profile_table, metrics_manager=metrics_manager)

    body = {"moduleId": "m1", "score": 40}
    handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001", body=body))

    saved = user_profile_table.update_module_progress.call_args.args[2]
    assert saved.isCompleted is True
    assert saved.highScore == 100
    metrics_manager.put_metric.assert_called_once_with("QuizFailed", 1)


def test_handle_put_unknown_module():
    user_profile_table = _profile_table_with(make_user("H-1001"))
    handler = create_user_progress_api_handler(user_profile_table=user_profile_table)

    body = {"moduleId": "m_nope", "score": 100}
    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001", body=body))

    assert response["statusCode"] == 404
    user_profile_table.update_module_progress.assert_not_called()


def test_handle_put_invalid_score():
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(make_user("H-1001")))

    body = {"moduleId": "m1", "score": 120}
    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001", body=body))

    assert response["statusCode"] == 400


def test_handle_put_missing_body():
    handler = create_user_progress_api_handler(user_profile_table=_profile_table_with(make_user("H-1001")))

    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001"))

    assert response["statusCode"] == 400
    assert json.loads(response["body"])["message"] == "Request body is missing."


def test_handle_put_write_failure():
    user_profile_table = _profile_table_with(make_user("H-1001"))
    user_profile_table.update_module_progress.return_value = False
    metrics_manager = Mock()
    handler = create_user_progress_api_handler(user_profile_table=user_profile_table, metrics_manager=metrics_manager)

    body = {"moduleId": "m1", "score": 100}
    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1001", body=body))

    assert response["statusCode"] == 500
    assert json.loads(response["body"])["message"] == "Failed to save quiz result."
    metrics_manager.put_metric.assert_called_once_with("ProgressWriteFailure", 1)


def test_handle_put_module_hidden_from_role():
    user_profile_table = _profile_table_with(make_user("H-1002", role="Non-clinical"))
    metrics_manager = Mock()
    handler = create_user_progress_api_handler(user_profile_table=user_profile_table, metrics_manager=metrics_manager)

    body = {"moduleId": "m_ps_1", "score": 100}
    response = handler.handle(create_api_event("PUT", "/progress", hospital_number="H-1002", body=body))

    assert response["statusCode"] == 404
    assert json.loads(response["body"])["message"] == "Module m_ps_1 not found."
    user_profile_table.update_module_progress.assert_not_called()
    metrics_manager.put_metric.assert_not_called()
