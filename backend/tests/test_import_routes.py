from datetime import datetime
from io import BytesIO

from openpyxl import Workbook, load_workbook

from app.core.config import get_settings
from app.services.bulk_import import TEMPLATE_HEADERS
from app.services.import_workbook import XLSX_MEDIA_TYPE


def workbook_bytes(rows, headers=TEMPLATE_HEADERS):
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Sessions"
    sheet.append(list(headers))
    for row in rows:
        sheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def upload(client, content, filename="sessions.xlsx"):
    return client.post("/api/sessions/import", files={"file": (filename, content, XLSX_MEDIA_TYPE)})


def test_template_has_upload_header_and_reference_names(client, school):
    response = client.get("/api/sessions/import/template")
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE

    workbook = load_workbook(BytesIO(response.content))
    header = [cell.value for cell in workbook["Sessions"][1]]
    assert tuple(header) == TEMPLATE_HEADERS

    reference = workbook["Reference"]
    assert reference["A2"].value == "CBSE"
    combos = {(row[2], row[3], row[4]) for row in reference.iter_rows(min_row=2, values_only=True)}
    assert ("CBSE", "Class 5 (B)", "Science") in combos
    teachers = {row[6] for row in reference.iter_rows(min_row=2, values_only=True) if row[6]}
    assert {"Asha Rao", "Ravi Kumar", "Meera Iyer"} <= teachers


def test_upload_review_and_commit(client, school):
    content = workbook_bytes(
        [
            ("2026-01-05 09:00", "CBSE", "Class 5B", "Science", 60, None),
            (datetime(2026, 1, 5, 9, 30), "CBSE", "Class 5 (B)", "Science", 45, "Asha Rao"),
            (None, None, None, None, None, None),
            ("2026-01-05 11:00", "CBSE", "Class 9A", "Science", 60, None),
        ]
    )

    parsed = upload(client, content)
    assert parsed.status_code == 201, parsed.text
    job = parsed.json()
    assert job["filename"] == "sessions.xlsx"
    assert job["summary"]["total_rows"] == 3
    assert job["summary"]["valid_rows"] == 2
    assert job["summary"]["conflict_counts"] == {"OVERLAP": 2}
    rows = {row["row_number"]: row for row in job["rows"]}
    assert set(rows) == {2, 3, 5}
    assert rows[2]["teacher_source"] == "AUTO"
    assert rows[5]["issues"][0]["kind"] == "REFERENCE"

    reviewed = client.patch(f"/api/sessions/import/{job['job_id']}/rows/3", json={"teacher_id": school.ravi_id})
    assert reviewed.status_code == 200
    assert reviewed.json()["summary"]["conflict_counts"] == {}

    committed = client.post(f"/api/sessions/import/{job['job_id']}/commit")
    assert committed.status_code == 200
    result = committed.json()
    assert result["created_count"] == 2
    assert result["invalid_count"] == 1
    assert result["error_count"] == 1

    stored = client.get("/api/sessions", params={"class_id": school.class_id}).json()
    assert sorted(item["teacher_id"] for item in stored) == sorted([school.asha_id, school.ravi_id])


def test_recommit_creates_duplicates(client, school):
    job = upload(client, workbook_bytes([("2026-01-05 09:00", "CBSE", "Class 5B", "Science", 60, None)])).json()

    client.post(f"/api/sessions/import/{job['job_id']}/commit")
    second = client.post(f"/api/sessions/import/{job['job_id']}/commit").json()

    assert second["created_count"] == 1
    assert len(client.get("/api/sessions").json()) == 2
    assert client.get(f"/api/sessions/import/{job['job_id']}").json()["commit_count"] == 2


def test_excluding_a_row_skips_it_on_commit(client, school):
    job = upload(
        client,
        workbook_bytes(
            [
                ("2026-01-05 09:00", "CBSE", "Class 5B", "Science", 60, None),
                ("2026-01-06 09:00", "CBSE", "Class 5B", "Maths", 60, None),
            ]
        ),
    ).json()

    reviewed = client.patch(f"/api/sessions/import/{job['job_id']}/rows/3", json={"included": False})
    assert reviewed.json()["summary"]["ready_rows"] == 1

    result = client.post(f"/api/sessions/import/{job['job_id']}/commit").json()
    assert result["created_count"] == 1
    assert result["excluded_count"] == 1


def test_blocking_conflict_setting_applies_to_uploads(client, school, monkeypatch):
    monkeypatch.setattr(get_settings(), "bulk_import_blocking_conflicts", ["HOLIDAY"])

    job = upload(
        client,
        workbook_bytes(
            [
                ("2026-01-26 09:00", "CBSE", "Class 5B", "Science", 60, None),
                ("2026-01-27 09:00", "CBSE", "Class 5B", "Science", 60, None),
            ]
        ),
    ).json()

    assert job["blocking_conflicts"] == ["HOLIDAY"]
    assert job["summary"]["valid_rows"] == 1
    assert job["rows"][0]["issues"][0]["kind"] == "CONFLICT"


def test_upload_with_wrong_header_is_rejected(client, school):
    response = upload(client, workbook_bytes([], headers=("Date", "Board", "Class", "Subject")))

    assert response.status_code == 400
    assert response.json()["details"]["expected"] == list(TEMPLATE_HEADERS)


def test_upload_that_is_not_a_workbook_is_rejected(client, school):
    response = upload(client, b"date,board\n2026-01-05,CBSE\n", filename="sessions.csv")

    assert response.status_code == 400


def test_upload_row_limit(client, school, monkeypatch):
    monkeypatch.setattr(get_settings(), "bulk_import_max_rows", 1)
    content = workbook_bytes(
        [
            ("2026-01-05 09:00", "CBSE", "Class 5B", "Science", 60, None),
            ("2026-01-06 09:00", "CBSE", "Class 5B", "Science", 60, None),
        ]
    )

    response = upload(client, content)
    assert response.status_code == 400
    assert response.json()["details"]["max_rows"] == 1


def test_unknown_job_and_row(client, school):
    assert client.get("/api/sessions/import/missing").status_code == 404

    job = upload(client, workbook_bytes([("2026-01-05 09:00", "CBSE", "Class 5B", "Science", 60, None)])).json()
    response = client.patch(f"/api/sessions/import/{job['job_id']}/rows/99", json={"included": False})
    assert response.status_code == 404


def test_numeric_date_cell_out_of_range_keeps_the_rest_of_the_upload(client, school):
    content = workbook_bytes(
        [
            (20260105, "CBSE", "Class 5B", "Science", 60, None),
            ("2026-01-06 09:00", "CBSE", "Class 5B", "Science", 60, None),
        ]
    )

    response = upload(client, content)
    assert response.status_code == 201, response.text
    job = response.json()
    assert job["summary"]["total_rows"] == 2
    assert job["summary"]["valid_rows"] == 1
    assert job["rows"][0]["issues"][0]["kind"] == "VALIDATION"
