import pytest

from app.core.exceptions import InvalidTransitionError
from app.models.teaching_session import SessionStatus
from app.services.lifecycle import SessionAction, allowed_actions, next_status


def create_session(client, school, **overrides):
    payload = {
        "class_id": school.class_id,
        "subject_id": school.science_id,
        "start_time": "2026-01-05T14:30:00",
        "end_time": "2026-01-05T15:30:00",
    }
    payload.update(overrides)
    response = client.post("/api/sessions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["session"]


def test_transition_graph():
    assert next_status("s", SessionStatus.scheduled, SessionAction.start) == SessionStatus.in_progress
    assert next_status("s", SessionStatus.in_progress, SessionAction.end) == SessionStatus.pending_log
    assert next_status("s", SessionStatus.pending_log, SessionAction.submit_log) == SessionStatus.completed
    assert next_status("s", SessionStatus.scheduled, SessionAction.cancel) == SessionStatus.cancelled
    assert next_status("s", SessionStatus.in_progress, SessionAction.cancel) == SessionStatus.cancelled


@pytest.mark.parametrize(
    "current, action",
    [
        (SessionStatus.scheduled, SessionAction.end),
        (SessionStatus.scheduled, SessionAction.submit_log),
        (SessionStatus.in_progress, SessionAction.start),
        (SessionStatus.pending_log, SessionAction.cancel),
        (SessionStatus.completed, SessionAction.start),
        (SessionStatus.cancelled, SessionAction.start),
    ],
)
def test_rejected_transitions(current, action):
    with pytest.raises(InvalidTransitionError):
        next_status("s", current, action)


def test_terminal_states_allow_nothing():
    assert allowed_actions(SessionStatus.completed) == []
    assert allowed_actions(SessionStatus.cancelled) == []


def test_full_lifecycle_with_log(client, school):
    session = create_session(client, school)
    session_id = session["id"]
    assert session["status"] == "SCHEDULED"

    started = client.post(f"/api/sessions/{session_id}/start")
    assert started.status_code == 200
    assert started.json()["status"] == "IN_PROGRESS"

    ended = client.post(f"/api/sessions/{session_id}/end")
    assert ended.status_code == 200
    assert ended.json()["status"] == "PENDING_LOG"

    logged = client.post(
        f"/api/sessions/{session_id}/log",
        json={
            "topics_covered": "  Roots and stems  ",
            "homework": "Worksheet 3",
            "student_notes": [
                {"student_id": school.student_ids[0], "note": "Asked good questions", "flag": "EXCELLENT"},
                {"student_id": school.student_ids[1]},
            ],
        },
    )
    assert logged.status_code == 200, logged.text
    detail = logged.json()
    assert detail["status"] == "COMPLETED"
    assert detail["allowed_actions"] == []
    assert detail["log"]["topics_covered"] == "Roots and stems"
    # Notes with neither text nor flag are not stored.
    assert [note["student_id"] for note in detail["log"]["student_notes"]] == [school.student_ids[0]]


def test_submit_log_outside_pending_log_is_rejected(client, school):
    session_id = create_session(client, school)["id"]

    response = client.post(f"/api/sessions/{session_id}/log", json={"topics_covered": "Roots"})
    assert response.status_code == 409
    assert client.get(f"/api/sessions/{session_id}").json()["status"] == "SCHEDULED"


def test_log_requires_topics_covered(client, school):
    session_id = create_session(client, school)["id"]
    client.post(f"/api/sessions/{session_id}/start")
    client.post(f"/api/sessions/{session_id}/end")

    response = client.post(f"/api/sessions/{session_id}/log", json={"topics_covered": "   "})
    assert response.status_code == 422
    assert client.get(f"/api/sessions/{session_id}").json()["status"] == "PENDING_LOG"


def test_log_rejects_students_outside_the_class(client, school):
    session_id = create_session(client, school)["id"]
    client.post(f"/api/sessions/{session_id}/start")
    client.post(f"/api/sessions/{session_id}/end")

    response = client.post(
        f"/api/sessions/{session_id}/log",
        json={"topics_covered": "Roots", "student_notes": [{"student_id": "not-enrolled", "flag": "ABSENT"}]},
    )
    assert response.status_code == 422
    assert response.json()["details"]["reference_type"] == "Student"
    assert client.get(f"/api/sessions/{session_id}").json()["status"] == "PENDING_LOG"


def test_cancel_with_reason_prefixes_description(client, school):
    session_id = create_session(client, school, description="Lab visit")["id"]

    response = client.post(f"/api/sessions/{session_id}/cancel", json={"reason": "Teacher unwell"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "CANCELLED"
    assert body["description"].startswith("[CANCELLED] Teacher unwell")
    assert "Lab visit" in body["description"]


def test_cancel_from_in_progress_and_not_after_end(client, school):
    running = create_session(client, school)["id"]
    client.post(f"/api/sessions/{running}/start")
    assert client.post(f"/api/sessions/{running}/cancel").json()["status"] == "CANCELLED"

    pending = create_session(
        client, school, start_time="2026-01-06T10:00:00", end_time="2026-01-06T11:00:00"
    )["id"]
    client.post(f"/api/sessions/{pending}/start")
    client.post(f"/api/sessions/{pending}/end")
    response = client.post(f"/api/sessions/{pending}/cancel")
    assert response.status_code == 409
    assert response.json()["details"]["current_status"] == "PENDING_LOG"


def test_unknown_session_is_404(client, school):
    response = client.post("/api/sessions/does-not-exist/start")
    assert response.status_code == 404
