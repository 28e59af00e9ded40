from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import get_settings
from app.schemas.bulk_import import BulkCommitResult, ImportJobOut, ImportRowUpdate, SessionSeriesRequest
from app.schemas.conflict import ConflictType
from app.services.bulk_import import (
    ImportPolicy,
    build_import_job,
    candidate_window,
    commit_import,
    override_teacher,
    set_row_included,
)
from app.services.import_jobs import get_import_job_registry
from app.services.import_workbook import XLSX_MEDIA_TYPE, build_import_template, read_import_rows
from app.services.repositories import SqlCatalog, SqlSessionStore, capture_snapshot, default_duration_minutes
from app.services.session_series import build_series_job, plan_series

logger = logging.getLogger(__name__)

router = APIRouter()


def build_import_policy(db: Session) -> ImportPolicy:
    settings = get_settings()
    return ImportPolicy(
        blocking_conflicts=frozenset(ConflictType(value) for value in settings.bulk_import_blocking_conflicts),
        default_duration_minutes=default_duration_minutes(db),
        academic_year_start_month=settings.academic_year_start_month,
    )


@router.get("/template")
def download_import_template(db: Session = Depends(get_db)) -> Response:
    content = build_import_template(SqlCatalog(db).snapshot())
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="session-import-template.xlsx"'},
    )


@router.post("", response_model=ImportJobOut, status_code=status.HTTP_201_CREATED)
def upload_sessions(file: UploadFile = File(...), db: Session = Depends(get_db)) -> ImportJobOut:
    settings = get_settings()
    content = file.file.read()
    policy = build_import_policy(db)
    raw_rows = read_import_rows(content, max_rows=settings.bulk_import_max_rows)

    window = candidate_window(raw_rows, policy)
    if window is None:
        snapshot = capture_snapshot(db)
    else:
        snapshot = capture_snapshot(db, window_start=window[0], window_end=window[1])

    job = build_import_job(raw_rows, snapshot, policy, source="upload", filename=file.filename)
    get_import_job_registry().put(job, ttl_seconds=settings.bulk_import_job_ttl_seconds)
    return job.to_out()


@router.post("/series", response_model=ImportJobOut, status_code=status.HTTP_201_CREATED)
def plan_session_series(payload: SessionSeriesRequest, db: Session = Depends(get_db)) -> ImportJobOut:
    settings = get_settings()
    policy = build_import_policy(db)
    plan = plan_series(payload, SqlCatalog(db).snapshot())
    duration = payload.duration_minutes or policy.default_duration_minutes
    snapshot = capture_snapshot(
        db,
        window_start=min(slot.start_time for slot in plan),
        window_end=max(slot.start_time for slot in plan) + timedelta(minutes=duration),
    )
    job = build_series_job(payload, plan, snapshot, policy)
    get_import_job_registry().put(job, ttl_seconds=settings.bulk_import_job_ttl_seconds)
    logger.info("Planned series job %s with %d session(s)", job.id, len(job.rows))
    return job.to_out()


@router.get("/{job_id}", response_model=ImportJobOut)
def get_import_job(job_id: str) -> ImportJobOut:
    job = get_import_job_registry().get(job_id, ttl_seconds=get_settings().bulk_import_job_ttl_seconds)
    return job.to_out()


@router.patch("/{job_id}/rows/{row_number}", response_model=ImportJobOut)
def update_import_row(job_id: str, row_number: int, payload: ImportRowUpdate) -> ImportJobOut:
    job = get_import_job_registry().get(job_id, ttl_seconds=get_settings().bulk_import_job_ttl_seconds)
    if "teacher_id" in payload.model_fields_set:
        override_teacher(job, row_number, payload.teacher_id)
    if payload.included is not None:
        set_row_included(job, row_number, payload.included)
    # Other rows' overlap verdicts can change with this one, so the whole job is returned.
    return job.to_out()


@router.post("/{job_id}/commit", response_model=BulkCommitResult)
def commit_import_job(job_id: str, db: Session = Depends(get_db)) -> BulkCommitResult:
    job = get_import_job_registry().get(job_id, ttl_seconds=get_settings().bulk_import_job_ttl_seconds)
    return commit_import(job, SqlSessionStore(db))
