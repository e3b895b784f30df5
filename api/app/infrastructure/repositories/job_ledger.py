"""
Ledger de jobs en memoria.

Los jobs viven mientras vive el proceso: un reinicio los descarta.
Para durabilidad basta con otra implementacion de IJobRepository
(Redis, tabla) sin tocar el orquestador.

Implementacion:
- `threading.Lock` único: serializa mutaciones concurrentes de tareas
  asyncio y de endpoints sincronos ejecutados en el threadpool.
- Los lectores reciben copias, nunca la instancia interna.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from typing import Dict, Optional, Sequence

from loguru import logger

from app.domain.entities.job import ImportJob, ImportResultEntry
from app.domain.repositories.job_repository import IJobRepository
from app.shared.constants.import_constants import (
    SYSTEM_ERROR_TITLE,
    JobStatus,
    ResultStatus,
)
from app.shared.utils.datetime_utils import DateTimeUtils


class InMemoryJobLedger(IJobRepository):
    """Registro de jobs en un dict protegido por lock."""

    def __init__(self) -> None:
        self._jobs: Dict[str, ImportJob] = {}
        self._lock = threading.Lock()

    def create_job(self, entity_type: str, total_records: int) -> str:
        job_id = str(uuid.uuid4())
        now = DateTimeUtils.now_utc()
        job = ImportJob(
            id=job_id,
            entity_type=entity_type,
            total_records=max(0, int(total_records)),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._jobs[job_id] = job
        logger.info(f"[jobs] Job {job_id} creado ({entity_type}, {total_records} registros)")
        return job_id

    def get_job(self, job_id: str) -> Optional[ImportJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            return replace(job, results=list(job.results))

    def update_progress(
        self,
        job_id: str,
        processed: int,
        success: int,
        error: int,
        new_results: Sequence[ImportResultEntry] = (),
        group_count: Optional[int] = None,
    ) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return

            # Valores absolutos, pero nunca retroceden ni superan el total
            job.processed_records = max(job.processed_records, min(processed, job.total_records))
            job.success_count = max(job.success_count, success)
            job.error_count = max(job.error_count, error)
            if group_count is not None:
                job.group_count = group_count
            job.results.extend(new_results)

            if not job.is_terminal:
                if job.status == JobStatus.PENDING:
                    job.status = JobStatus.PROCESSING
                if job.processed_records >= job.total_records:
                    job.status = JobStatus.COMPLETED
            job.updated_at = DateTimeUtils.now_utc()

    def complete_job(self, job_id: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            job.status = JobStatus.COMPLETED
            job.updated_at = DateTimeUtils.now_utc()

    def fail_job(self, job_id: str, error_message: str) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return
            job.status = JobStatus.FAILED
            job.results.append(
                ImportResultEntry(
                    title=SYSTEM_ERROR_TITLE,
                    status=ResultStatus.ERROR,
                    message=error_message,
                )
            )
            job.updated_at = DateTimeUtils.now_utc()
        logger.error(f"[jobs] Job {job_id} fallido: {error_message}")

    def cancel_job(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.is_terminal:
                return False
            job.status = JobStatus.CANCELLED
            job.updated_at = DateTimeUtils.now_utc()
        logger.warning(f"[jobs] Job {job_id} cancelado")
        return True

    def is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            return job is not None and job.status == JobStatus.CANCELLED


# Instancia global: el ledger vive mientras vive el proceso
job_ledger = InMemoryJobLedger()
