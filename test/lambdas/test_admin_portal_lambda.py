import json
from datetime import datetime, timezone
from unittest.mock import Mock

from hospital_training.dynamodb.modules_table import ModulesTable
from hospital_training.dynamodb.secrets_table import SecretsTable
from hospital_training.dynamodb.training_sessions_table import TrainingSessionsTable
from hospital_training.dynamodb.user_profile_table import UserProfileTable
from hospital_training.evaluations.evaluation_aggregator import build_evaluation
from hospital_training.lambdas.admin_portal_lambda import AdminPortalApiHandler
from hospital_training.models.session_models import EvaluationInputModel

from test_utils.factories import create_api_event, make_module, make_session, make_user

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
ADMIN = make_user("ADMIN-1", role="QA Admin", last_name="Admin")

CATALOG = [
    make_module("m_qa_1", section="A. Quality Assurance"),
    make_module("m1", section="B. Infection Prevention and Control", allowed_roles=["Nurse", "Non-clinical"]),
    make_module("m_ps_1", section="C. Patient Safety and Risk Management"),
]

NEW_USER = {
    "firstName": "Ana",
    "lastName": "Reyes",
    "birthday": "1995-07-01",
    "hospitalNumber": "H-3001",
    "plantillaPosition": "Pharmacist I",
    "role": "Non-clinical",
    "division": "Allied Health Division",
    "departmentOrSection": "Pharmacy Section",
}


class AdminMocks:
    def __init__(self, users=None, sessions=None):
        users = users if users is not None else []
        sessions = sessions if sessions is not None else []
        profiles = {user.hospitalNumber: user for user in [ADMIN, *users]}

        self.user_profile_table = Mock(spec=UserProfileTable)
        self.user_profile_table.get_profile.side_effect = profiles.get
        self.user_profile_table.fetch_users.return_value = users

        self.modules_table = Mock(spec=ModulesTable)
        self.modules_table.fetch_catalog.return_value = CATALOG
        self.modules_table.ensure_seeded.return_value = CATALOG
        self.modules_table.delete_module.return_value = True

        self.training_sessions_table = Mock(spec=TrainingSessionsTable)
        self.training_sessions_table.list_sessions.return_value = sessions
        self.training_sessions_table.get_session.side_effect = lambda session_id: next(
            (s for s in sessions if s.id == session_id), None
        )
        self.training_sessions_table.delete_session.return_value = True

        self.secrets_table = Mock(spec=SecretsTable)
        self.secrets_table.get_admin_delete_password.return_value = "delete-me"

        self.metrics_manager = Mock()

    def handler(self, admin_hospital_numbers=frozenset()) -> AdminPortalApiHandler:
        return AdminPortalApiHandler(
            user_profile_table=self.user_profile_table,
            modules_table=self.modules_table,
            training_sessions_table=self.training_sessions_table,
            secrets_table=self.secrets_table,
            metrics_manager=self.metrics_manager,
            admin_hospital_numbers=admin_hospital_numbers,
            now_provider=lambda: NOW,
        )


def admin_event(method: str, path: str, body=None, query=None) -> dict:
    return create_api_event(method, path, hospital_number="ADMIN-1", body=body, query=query)


def _body(response: dict) -> dict:
    return json.loads(response["body"])


# Access


def test_handle_unauthorized_access():
    response = AdminMocks().handler().handle({"requestContext": {"http": {"method": "GET", "path": "/admin/users"}}})
    assert response["statusCode"] == 401
    assert "User identification failed" in _body(response)["message"]


def test_non_admin_forbidden():
    mocks = AdminMocks(users=[make_user("H-1", role="Nurse")])
    response = mocks.handler().handle(create_api_event("GET", "/admin/users", hospital_number="H-1"))

    assert response["statusCode"] == 403
    mocks.user_profile_table.fetch_users.assert_not_called()


def test_head_is_not_admin():
    mocks = AdminMocks(users=[make_user("H-1", role="Head / Assistant Head")])
    response = mocks.handler().handle(create_api_event("GET", "/admin/users", hospital_number="H-1"))

    assert response["statusCode"] == 403


def test_configured_admin_bypass_without_profile():
    mocks = AdminMocks()
    handler = mocks.handler(admin_hospital_numbers=frozenset({"ROOT-1"}))

    response = handler.handle(create_api_event("GET", "/admin/modules", hospital_number="ROOT-1"))

    assert response["statusCode"] == 200


def test_unknown_admin_route():
    response = AdminMocks().handler().handle(admin_event("PATCH", "/admin/users"))

    assert response["statusCode"] == 404
    assert "Resource not found or method not allowed" in _body(response)["message"]


# Users


def test_list_users_with_progress():
    users = [
        make_user("H-1", role="Nurse", completed=["m_qa_1", "m1"], last_name="Santos"),
        make_user("H-2", role="Non-clinical", completed=[], last_name="Aquino", division="Allied Health Division"),
    ]
    mocks = AdminMocks(users=users)

    response = mocks.handler().handle(admin_event("GET", "/admin/users"))

    assert response["statusCode"] == 200
    body = _body(response)
    assert [u["hospitalNumber"] for u in body["users"]] == ["H-2", "H-1"]
    # Nurse: m1 by allow-list, m_qa_1 and m_ps_1 by clinical fallback
    assert body["users"][1]["progressSummary"]["total"] == 3
    assert body["users"][1]["progressSummary"]["completedCount"] == 2
    # Non-clinical: only the module that lists it
    assert body["users"][0]["progressSummary"]["total"] == 1
    assert body["averageCompletion"] == 34


def test_list_users_filtered():
    users = [
        make_user("H-1", role="Nurse", last_name="Santos"),
        make_user("H-2", role="Non-clinical", last_name="Aquino", division="Allied Health Division"),
    ]
    mocks = AdminMocks(users=users)

    response = mocks.handler().handle(admin_event("GET", "/admin/users", query={"division": "Allied Health Division"}))

    assert [u["hospitalNumber"] for u in _body(response)["users"]] == ["H-2"]


def test_create_user():
    mocks = AdminMocks()
    mocks.user_profile_table.register_user.side_effect = lambda registration: make_user(registration.hospitalNumber)

    response = mocks.handler().handle(admin_event("POST", "/admin/users", body=NEW_USER))

    assert response["statusCode"] == 201
    mocks.user_profile_table.register_user.assert_called_once()


def test_create_user_duplicate():
    mocks = AdminMocks()
    mocks.user_profile_table.register_user.return_value = None

    response = mocks.handler().handle(admin_event("POST", "/admin/users", body=NEW_USER))

    assert response["statusCode"] == 409


def test_update_user():
    mocks = AdminMocks(users=[make_user("H-1")])
    mocks.user_profile_table.update_user.return_value = make_user("H-1", role="Specialized Nurse")

    response = mocks.handler().handle(admin_event("PUT", "/admin/users/H-1", body={"role": "Specialized Nurse"}))

    assert response["statusCode"] == 200
    assert _body(response)["role"] == "Specialized Nurse"
    update = mocks.user_profile_table.update_user.call_args.args[1]
    assert update.role == "Specialized Nurse"
    assert update.firstName is None


def test_update_user_division_change_checks_department():
    mocks = AdminMocks(users=[make_user("H-1", division="Nursing Division", department="")])

    response = mocks.handler().handle(
        admin_event("PUT", "/admin/users/H-1", body={"division": "Financial Management Division"})
    )

    # The existing empty department is not a section of the new division
    assert response["statusCode"] == 400
    mocks.user_profile_table.update_user.assert_not_called()


def test_update_unknown_user():
    response = AdminMocks().handler().handle(admin_event("PUT", "/admin/users/H-404", body={"firstName": "X"}))
    assert response["statusCode"] == 404


def test_delete_user():
    mocks = AdminMocks(users=[make_user("H-1")])
    mocks.user_profile_table.delete_user.return_value = True

    response = mocks.handler().handle(admin_event("DELETE", "/admin/users/H-1", body={"password": "delete-me"}))

    assert response["statusCode"] == 200
    mocks.user_profile_table.delete_user.assert_called_once_with("H-1")
    mocks.metrics_manager.put_metric.assert_called_once_with("UserDeleted", 1)


def test_delete_user_wrong_password():
    mocks = AdminMocks(users=[make_user("H-1")])

    response = mocks.handler().handle(admin_event("DELETE", "/admin/users/H-1", body={"password": "guess"}))

    assert response["statusCode"] == 403
    assert _body(response)["message"] == "Incorrect password."
    mocks.user_profile_table.delete_user.assert_not_called()


def test_delete_user_password_not_configured():
    mocks = AdminMocks(users=[make_user("H-1")])
    mocks.secrets_table.get_admin_delete_password.side_effect = KeyError("ADMIN_DELETE_PASSWORD")

    response = mocks.handler().handle(admin_event("DELETE", "/admin/users/H-1", body={"password": "delete-me"}))

    assert response["statusCode"] == 500
    assert _body(response)["message"] == "Server configuration error"


# Modules


def test_list_modules():
    body = _body(AdminMocks().handler().handle(admin_event("GET", "/admin/modules")))

    assert [m["id"] for m in body["modules"]] == ["m_qa_1", "m1", "m_ps_1"]
    assert "Medical Intern" in body["roles"]


def test_create_module():
    mocks = AdminMocks()
    module_input = {"section": "D. New Section", "title": "Sharps Safety", "topics": ["Needles"]}

    response = mocks.handler().handle(admin_event("POST", "/admin/modules", body=module_input))

    assert response["statusCode"] == 201
    body = _body(response)
    assert body["id"] == f"m_custom_{int(NOW.timestamp() * 1000)}"
    mocks.modules_table.ensure_seeded.assert_called_once()
    assert mocks.modules_table.save_module.call_args.args[0].title == "Sharps Safety"


def test_update_module():
    mocks = AdminMocks()
    module_input = {"section": "A. Quality Assurance", "title": "Patient's Rights (2026)"}

    response = mocks.handler().handle(admin_event("PUT", "/admin/modules/m_qa_1", body=module_input))

    assert response["statusCode"] == 200
    assert _body(response)["id"] == "m_qa_1"


def test_update_unknown_module():
    mocks = AdminMocks()
    response = mocks.handler().handle(
        admin_event("PUT", "/admin/modules/m_nope", body={"section": "A", "title": "T"})
    )

    assert response["statusCode"] == 404
    mocks.modules_table.save_module.assert_not_called()


def test_create_module_suspicious_title():
    mocks = AdminMocks()
    response = mocks.handler().handle(
        admin_event("POST", "/admin/modules", body={"section": "A", "title": "x" * 201})
    )

    assert response["statusCode"] == 400
    mocks.modules_table.save_module.assert_not_called()


def test_delete_module():
    mocks = AdminMocks()
    response = mocks.handler().handle(admin_event("DELETE", "/admin/modules/m1"))

    assert response["statusCode"] == 200
    mocks.modules_table.delete_module.assert_called_once_with("m1")


def test_update_role_access():
    mocks = AdminMocks()
    body = {"allowedRoles": {"m_qa_1": ["Doctor", "Doctor", "Nurse"]}, "selectAll": ["m_ps_1"]}

    response = mocks.handler().handle(admin_event("PUT", "/admin/role-access", body=body))

    assert response["statusCode"] == 200
    saved = {call.args[0].id: call.args[0].allowedRoles for call in mocks.modules_table.save_module.call_args_list}
    assert saved["m_qa_1"] == ["Doctor", "Nurse"]
    assert len(saved["m_ps_1"]) == 10


def test_update_role_access_unknown_module():
    mocks = AdminMocks()
    response = mocks.handler().handle(admin_event("PUT", "/admin/role-access", body={"selectAll": ["m_nope"]}))

    assert response["statusCode"] == 400
    assert _body(response)["message"] == "Unknown module ids: m_nope"


def test_get_policy_disagreements():
    body = _body(AdminMocks().handler().handle(admin_event("GET", "/admin/policy-disagreements")))

    disagreements = body["disagreements"]
    assert "QA Admin" not in disagreements
    # Dashboard hides risk management from nurses; the audit view's clinical fallback shows it
    assert disagreements["Nurse"] == ["m_ps_1"]


# Sessions


def _session_with_evaluations():
    session = make_session("s1", module_ids=["m_qa_1", "m1"], members=["H-1", "H-2"])
    first = EvaluationInputModel.model_validate({"scores": {f"q{i}": 4 for i in range(1, 6)}, "feedback": "Good"})
    second = EvaluationInputModel.model_validate({"scores": {f"q{i}": 5 for i in range(1, 6)}, "feedback": "Great"})
    session.evaluations = {
        "H-1": build_evaluation(make_user("H-1"), first, NOW),
        "H-2": build_evaluation(make_user("H-2"), second, datetime(2026, 3, 1, 13, 0, tzinfo=timezone.utc)),
    }
    return session


def test_list_sessions():
    users = [make_user("H-1", completed=["m_qa_1", "m1"]), make_user("H-2", completed=["m1"])]
    older = make_session(
        "s0",
        start=datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc),
        end=datetime(2026, 2, 1, 17, 0, tzinfo=timezone.utc),
    )
    mocks = AdminMocks(users=users, sessions=[older, _session_with_evaluations()])

    body = _body(mocks.handler().handle(admin_event("GET", "/admin/sessions")))

    assert [s["id"] for s in body["sessions"]] == ["s1", "s0"]
    assert body["sessions"][0]["cohortCompletion"] == 75
    assert body["sessions"][0]["memberCompletion"] == {"H-1": 100, "H-2": 50}
    assert body["sessions"][1]["memberCompletion"] == {}
    assert body["sessions"][0]["evaluationSummary"]["overall"] == 4.5
    assert body["sessions"][1]["evaluationSummary"] is None


def test_list_sessions_member_completion_skips_deleted_modules_and_unknown_members():
    users = [make_user("H-1", completed=["m1"]), make_user("H-9", completed=["m1"])]
    session = make_session("s1", module_ids=["m1", "m_deleted"], members=["H-1", "H-gone"])
    mocks = AdminMocks(users=users, sessions=[session])

    body = _body(mocks.handler().handle(admin_event("GET", "/admin/sessions")))

    assert body["sessions"][0]["memberCompletion"] == {"H-1": 100}
    assert body["sessions"][0]["cohortCompletion"] == 100


def test_create_session():
    mocks = AdminMocks()
    body = {
        "name": "Hand Hygiene Return Demo",
        "startDateTime": "2026-03-02T08:00:00Z",
        "endDateTime": "2026-03-02T17:00:00Z",
        "moduleIds": ["m1"],
        "employeeHospitalNumbers": ["H-1"],
    }

    response = mocks.handler().handle(admin_event("POST", "/admin/sessions", body=body))

    assert response["statusCode"] == 201
    saved = mocks.training_sessions_table.save_session.call_args.args[0]
    assert saved.id == f"s_{int(NOW.timestamp() * 1000)}"
    assert saved.evaluations == {}


def test_create_session_incomplete():
    mocks = AdminMocks()
    body = {"name": "No modules", "startDateTime": "2026-03-02T08:00:00Z", "endDateTime": "2026-03-02T17:00:00Z"}

    response = mocks.handler().handle(admin_event("POST", "/admin/sessions", body=body))

    assert response["statusCode"] == 400
    assert _body(response)["message"] == "Please fill in all fields and select at least one module and one employee."
    mocks.training_sessions_table.save_session.assert_not_called()


def test_update_session_keeps_evaluations():
    mocks = AdminMocks(sessions=[_session_with_evaluations()])
    body = {
        "name": "Renamed",
        "startDateTime": "2026-03-01T08:00:00Z",
        "endDateTime": "2026-03-01T18:00:00Z",
        "moduleIds": ["m1"],
        "employeeHospitalNumbers": ["H-1", "H-2"],
        "status": "closed",
    }

    response = mocks.handler().handle(admin_event("PUT", "/admin/sessions/s1", body=body))

    assert response["statusCode"] == 200
    saved = mocks.training_sessions_table.save_session.call_args.args[0]
    assert saved.status == "closed"
    assert sorted(saved.evaluations) == ["H-1", "H-2"]


def test_update_unknown_session():
    response = AdminMocks().handler().handle(admin_event("PUT", "/admin/sessions/nope", body={}))
    assert response["statusCode"] == 404


def test_delete_session():
    mocks = AdminMocks()
    response = mocks.handler().handle(admin_event("DELETE", "/admin/sessions/s1"))

    assert response["statusCode"] == 200
    mocks.training_sessions_table.delete_session.assert_called_once_with("s1")


def test_get_session_evaluations():
    mocks = AdminMocks(sessions=[_session_with_evaluations()])

    body = _body(mocks.handler().handle(admin_event("GET", "/admin/sessions/s1/evaluations")))

    assert body["sessionId"] == "s1"
    assert [e["userId"] for e in body["evaluations"]] == ["H-2", "H-1"]
    assert body["summary"]["evaluationCount"] == 2
    assert body["summary"]["questionAverages"]["q1"] == 4.5
    assert set(body["questions"]) == {"q1", "q2", "q3", "q4", "q5"}
