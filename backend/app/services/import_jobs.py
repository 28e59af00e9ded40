from __future__ import annotations

from threading import Lock
import time

from app.core.exceptions import ResourceNotFoundError
from app.services.bulk_import import ImportJob


class InMemoryImportJobRegistry:
    """Keeps parsed import jobs, with their snapshots, between review and commit."""

    def __init__(self) -> None:
        self._jobs: dict[str, ImportJob] = {}
        self._lock = Lock()

    def _purge(self, ttl_seconds: int) -> None:
        earliest = time.time() - ttl_seconds
        for job_id in [job_id for job_id, job in self._jobs.items() if job.created_at < earliest]:
            del self._jobs[job_id]

    def put(self, job: ImportJob, *, ttl_seconds: int) -> ImportJob:
        with self._lock:
            self._purge(ttl_seconds)
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str, *, ttl_seconds: int) -> ImportJob:
        with self._lock:
            self._purge(ttl_seconds)
            job = self._jobs.get(job_id)
        if job is None:
            raise ResourceNotFoundError("Import job", job_id)
        return job

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


_registry = InMemoryImportJobRegistry()


def get_import_job_registry() -> InMemoryImportJobRegistry:
    return _registry


def clear_import_jobs() -> None:
    _registry.clear()
