def test_operating_schedule_upsert_and_default_duration(client, school):
    assert client.get("/api/operating-schedule").status_code == 404

    payload = {
        "working_days": ["Mon", "tue", "wed", "thu", "fri", "mon"],
        "school_start_time": "08:30",
        "school_end_time": "15:00",
        "default_period_duration": 45,
    }
    created = client.put("/api/operating-schedule", json=payload)
    assert created.status_code == 200, created.text
    assert created.json()["working_days"] == ["mon", "tue", "wed", "thu", "fri"]

    updated = client.put("/api/operating-schedule", json={**payload, "default_period_duration": 40})
    assert updated.json()["id"] == created.json()["id"]

    defaults = client.get(
        "/api/sessions/draft-defaults",
        params={"class_id": school.class_id, "subject_id": school.science_id},
    ).json()
    assert defaults["duration_minutes"] == 40
    assert defaults["title"] is None


def test_operating_schedule_validation(client):
    bad_day = client.put(
        "/api/operating-schedule",
        json={
            "working_days": ["funday"],
            "school_start_time": "08:30",
            "school_end_time": "15:00",
            "default_period_duration": 45,
        },
    )
    assert bad_day.status_code == 422

    inverted = client.put(
        "/api/operating-schedule",
        json={
            "working_days": ["mon"],
            "school_start_time": "15:00",
            "school_end_time": "08:30",
            "default_period_duration": 45,
        },
    )
    assert inverted.status_code == 422
