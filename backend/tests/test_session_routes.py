def session_payload(school, **overrides):
    payload = {
        "class_id": school.class_id,
        "subject_id": school.science_id,
        "start_time": "2026-01-05T14:30:00",
        "end_time": "2026-01-05T15:30:00",
    }
    payload.update(overrides)
    return payload


def test_create_generates_title_and_auto_assigns_first_allocated_teacher(client, school):
    response = client.post("/api/sessions", json=session_payload(school))
    assert response.status_code == 201, response.text
    body = response.json()

    assert body["session"]["title"] == "2601051430-CBSE-Class 5B-Science (2526)"
    assert body["session"]["teacher_id"] == school.asha_id
    assert body["teacher_auto_assigned"] is True
    assert body["conflict"]["has_conflict"] is False
    assert body["conflict"]["teacher_allocated"] is True


def test_explicit_title_and_teacher_are_kept(client, school):
    response = client.post(
        "/api/sessions",
        json=session_payload(school, title="Revision", teacher_id=school.meera_id),
    )
    body = response.json()

    assert body["session"]["title"] == "Revision"
    assert body["session"]["teacher_id"] == school.meera_id
    assert body["teacher_auto_assigned"] is False
    # Meera teaches Maths, not Science; that is reported but not a conflict.
    assert body["conflict"]["teacher_allocated"] is False
    assert body["conflict"]["has_conflict"] is False


def test_session_without_teacher_is_saved_with_advisory_conflict(client, school):
    response = client.post("/api/sessions", json=session_payload(school, auto_assign_teacher=False))
    assert response.status_code == 201
    body = response.json()

    assert body["session"]["teacher_id"] is None
    assert body["conflict"]["conflict_type"] == "NO_TEACHER"


def test_holiday_conflict_does_not_block_saving(client, school):
    response = client.post(
        "/api/sessions",
        json=session_payload(school, start_time="2026-01-26T09:00:00", end_time="2026-01-26T10:00:00"),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["conflict"]["conflict_type"] == "HOLIDAY"
    assert body["conflict"]["calendar_entry_title"] == "Republic Day"
    assert client.get(f"/api/sessions/{body['session']['id']}").status_code == 200


def test_aware_times_are_stored_as_school_local(client, school):
    response = client.post(
        "/api/sessions",
        json=session_payload(school, start_time="2026-01-05T09:00:00Z", end_time="2026-01-05T10:00:00Z"),
    )
    session = response.json()["session"]

    assert session["start_time"] == "2026-01-05T14:30:00"
    assert session["title"].startswith("2601051430-")


def test_end_before_start_is_rejected(client, school):
    response = client.post(
        "/api/sessions",
        json=session_payload(school, start_time="2026-01-05T15:30:00", end_time="2026-01-05T14:30:00"),
    )
    assert response.status_code == 422


def test_subject_from_another_class_is_rejected(client, school):
    response = client.post("/api/sessions", json=session_payload(school, subject_id="unknown-subject"))
    assert response.status_code == 422
    assert response.json()["details"]["reference_type"] == "Subject"


def test_topic_must_belong_to_chapter(client, school):
    response = client.post(
        "/api/sessions",
        json=session_payload(school, chapter_id=school.plants_id, topic_id=school.habitats_id),
    )
    assert response.status_code == 422

    accepted = client.post(
        "/api/sessions",
        json=session_payload(school, chapter_id=school.plants_id, topic_id=school.roots_id),
    )
    assert accepted.status_code == 201


def test_second_booking_for_same_teacher_reports_overlap(client, school):
    first = client.post("/api/sessions", json=session_payload(school)).json()["session"]
    second = client.post(
        "/api/sessions",
        json=session_payload(school, start_time="2026-01-05T15:00:00", end_time="2026-01-05T16:00:00"),
    ).json()

    assert second["conflict"]["conflict_type"] == "OVERLAP"
    assert second["conflict"]["overlapping_session_id"] == first["id"]


def test_conflict_check_ignores_the_session_being_edited(client, school):
    stored = client.post("/api/sessions", json=session_payload(school)).json()["session"]
    check = {
        "class_id": school.class_id,
        "subject_id": school.science_id,
        "teacher_id": school.asha_id,
        "start_time": "2026-01-05T14:45:00",
        "end_time": "2026-01-05T15:45:00",
    }

    as_new = client.post("/api/sessions/conflicts/check", json=check)
    assert as_new.json()["conflict_type"] == "OVERLAP"

    as_edit = client.post("/api/sessions/conflicts/check", json={**check, "session_id": stored["id"]})
    assert as_edit.status_code == 200
    assert as_edit.json()["has_conflict"] is False


def test_cancelled_sessions_free_the_teacher(client, school):
    first = client.post("/api/sessions", json=session_payload(school)).json()["session"]
    client.post(f"/api/sessions/{first['id']}/cancel")

    second = client.post("/api/sessions", json=session_payload(school)).json()
    assert second["conflict"]["has_conflict"] is False


def test_update_keeps_title_and_reevaluates(client, school):
    created = client.post("/api/sessions", json=session_payload(school)).json()["session"]

    response = client.put(
        f"/api/sessions/{created['id']}",
        json={"start_time": "2026-03-10T09:00:00", "end_time": "2026-03-10T10:00:00"},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["session"]["title"] == created["title"]
    assert body["session"]["teacher_id"] == school.asha_id
    assert body["conflict"]["conflict_type"] == "EXAM_DAY"


def test_update_rejects_inverted_interval(client, school):
    created = client.post("/api/sessions", json=session_payload(school)).json()["session"]

    response = client.put(f"/api/sessions/{created['id']}", json={"end_time": "2026-01-05T14:00:00"})
    assert response.status_code == 422
    assert client.get(f"/api/sessions/{created['id']}").json()["end_time"] == "2026-01-05T15:30:00"


def test_update_does_not_auto_assign(client, school):
    created = client.post("/api/sessions", json=session_payload(school, auto_assign_teacher=False)).json()["session"]

    body = client.put(f"/api/sessions/{created['id']}", json={"description": "Moved to lab"}).json()
    assert body["session"]["teacher_id"] is None
    assert body["conflict"]["conflict_type"] == "NO_TEACHER"


def test_draft_defaults(client, school):
    response = client.get(
        "/api/sessions/draft-defaults",
        params={
            "class_id": school.class_id,
            "subject_id": school.science_id,
            "start_time": "2026-04-01T10:00:00",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["teacher_id"] == school.asha_id
    assert body["candidate_teacher_ids"] == [school.asha_id, school.ravi_id]
    assert body["title"] == "2604011000-CBSE-Class 5B-Science (2627)"
    assert body["duration_minutes"] == 60
    assert body["end_time"] == "2026-04-01T11:00:00"


def test_list_filters_and_schedule_view(client, school):
    science = client.post("/api/sessions", json=session_payload(school)).json()["session"]
    client.post(
        "/api/sessions",
        json=session_payload(
            school,
            subject_id=school.maths_id,
            start_time="2026-01-06T09:00:00",
            end_time="2026-01-06T10:00:00",
        ),
    )
    client.post("/api/sessions", json=session_payload(school, teacher_id=school.asha_id, title="Clash"))

    by_subject = client.get("/api/sessions", params={"subject_id": school.maths_id}).json()
    assert [item["teacher_id"] for item in by_subject] == [school.meera_id]

    in_window = client.get(
        "/api/sessions",
        params={"start": "2026-01-05T00:00:00", "end": "2026-01-06T00:00:00"},
    ).json()
    assert len(in_window) == 2

    schedule = client.get(
        "/api/sessions/schedule",
        params={"start": "2026-01-05T00:00:00", "end": "2026-01-07T00:00:00", "teacher_id": school.asha_id},
    )
    assert schedule.status_code == 200
    entries = {item["id"]: item for item in schedule.json()}
    assert len(entries) == 2
    assert entries[science["id"]]["conflict"]["conflict_type"] == "OVERLAP"


def test_session_detail_lists_allowed_actions(client, school):
    created = client.post("/api/sessions", json=session_payload(school)).json()["session"]

    detail = client.get(f"/api/sessions/{created['id']}").json()
    assert detail["allowed_actions"] == ["start", "cancel"]
    assert detail["log"] is None


def test_allocations_and_calendar_listing(client, school):
    allocations = client.get("/api/allocations", params={"subject_id": school.science_id}).json()
    assert [item["teacher_id"] for item in allocations] == [school.asha_id, school.ravi_id]

    entries = client.get("/api/calendar", params={"start": "2026-01-01", "end": "2026-02-28"}).json()
    assert [item["title"] for item in entries] == ["Republic Day", "Staff Meeting"]

    assert client.get("/api/calendar", params={"start": "2026-02-01", "end": "2026-01-01"}).status_code == 422


def test_schedule_shows_cancelled_sessions_without_conflicts(client, school):
    cancelled = client.post("/api/sessions", json=session_payload(school, auto_assign_teacher=False)).json()["session"]
    client.post(f"/api/sessions/{cancelled['id']}/cancel")
    replaced = client.post("/api/sessions", json=session_payload(school, teacher_id=school.asha_id)).json()["session"]
    moved = client.post("/api/sessions", json=session_payload(school, teacher_id=school.asha_id)).json()["session"]
    client.post(f"/api/sessions/{moved['id']}/cancel")

    schedule = client.get(
        "/api/sessions/schedule",
        params={"start": "2026-01-05T00:00:00", "end": "2026-01-06T00:00:00"},
    ).json()
    entries = {item["id"]: item for item in schedule}

    assert entries[cancelled["id"]]["status"] == "CANCELLED"
    assert entries[cancelled["id"]]["conflict"]["has_conflict"] is False
    assert entries[moved["id"]]["conflict"]["has_conflict"] is False
    assert entries[replaced["id"]]["conflict"]["has_conflict"] is False
