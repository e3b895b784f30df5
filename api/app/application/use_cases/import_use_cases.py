"""
Casos de uso de importación masiva (orquestador de jobs).

Carácterísticas clave:
- El job se lanza en background y la request responde de inmediato.
- El progreso solo se comunica via el ledger (polling).
- Concurrencia acotada con asyncio.Semaphore; las unidades agrupadas
  (p.ej. ubicaciones de una empresa) se procesan en serie dentro de la unidad.
- Cancelación cooperativa: se consulta antes de lanzar cada unidad y en
  cada frontera de lote; el trabajo ya lanzado termina.
- Un registro fallido nunca aborta el job; solo un fallo de precondicion
  o del propio orquestador lo marca como failed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Set

from loguru import logger

from app.application.dto.import_dto import (
    CancelJobResponseDTO,
    ImportJobResponseDTO,
    ImportJobStatusDTO,
    ImportResultDTO,
)
from app.application.services.shape_validation import validate_shape
from app.core.config import Settings, settings as app_settings
from app.domain.entities.job import ImportJob, ImportResultEntry
from app.domain.entities.records import RecordOutcome, SyncUnit
from app.domain.repositories.job_repository import IJobRepository
from app.infrastructure.external.sync_adapters.base import EntitySyncAdapter
from app.shared.constants.import_constants import RecordAction, ResultStatus
from app.shared.exceptions.base import AppException
from app.shared.exceptions.domain import JobNotFoundException

AdapterFactory = Callable[[str, Optional[str]], EntitySyncAdapter]


@dataclass
class _Counters:
    processed: int = 0
    success: int = 0
    error: int = 0


class ImportUseCases:
    """
    Orquestador de jobs de importación.

    Nota: las tareas en background se guardan a nivel de clase para que
    no sean recolectadas mientras corren.
    """

    _background_tasks: Set[asyncio.Task] = set()

    def __init__(
        self,
        ledger: IJobRepository,
        adapter_factory: AdapterFactory,
        settings: Settings = app_settings,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._adapter_factory = adapter_factory
        self._settings = settings
        self._sleep = sleep

    async def start_import(
        self,
        entity_type: str,
        records: Sequence[Mapping[str, Any]],
        document_type: Optional[str] = None,
    ) -> ImportJobResponseDTO:
        """
        Valida la forma del archivo, crea el job y lo lanza en background.

        Raises:
            InvalidImportFileException: Si el archivo pertenece a otra familia
            ValidationException: Si faltan registros o columnas obligatorias
            UnsupportedEntityTypeException: Si la familia no tiene adaptador
        """
        validate_shape(entity_type, records)
        adapter = self._adapter_factory(entity_type, document_type)

        records = list(records)
        job_id = self._ledger.create_job(entity_type, len(records))
        logger.info(f"[import] Job {job_id} creado: {entity_type} ({len(records)} registros)")

        task = asyncio.create_task(self._run_job(job_id, adapter, records))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

        job = self._get_job_or_raise(job_id)
        return ImportJobResponseDTO(
            job_id=job.id,
            status=job.status.value,
            entity_type=job.entity_type,
            total_records=job.total_records,
            created_at=job.created_at,
            message="Import started",
        )

    async def get_job_status(self, job_id: str) -> ImportJobStatusDTO:
        job = self._get_job_or_raise(job_id)
        return ImportJobStatusDTO(
            job_id=job.id,
            status=job.status.value,
            entity_type=job.entity_type,
            progress=job.progress,
            total_records=job.total_records,
            processed_records=job.processed_records,
            success_count=job.success_count,
            error_count=job.error_count,
            group_count=job.group_count,
            results=[
                ImportResultDTO(
                    title=r.title,
                    status=ResultStatus(r.status).value,
                    message=r.message,
                    action=r.action,
                    primary_key=r.primary_key,
                    created=r.created,
                )
                for r in job.results
            ],
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    async def cancel_job(self, job_id: str) -> CancelJobResponseDTO:
        """
        Solicita la cancelación cooperativa.
        Sobre un job terminal no hace nada y devuelve su estado actual.
        """
        self._get_job_or_raise(job_id)
        cancelled = self._ledger.cancel_job(job_id)
        job = self._get_job_or_raise(job_id)
        message = "Import cancelled" if cancelled else f"Job already {job.status.value}"
        return CancelJobResponseDTO(job_id=job.id, status=job.status.value, message=message)

    def _get_job_or_raise(self, job_id: str) -> ImportJob:
        job = self._ledger.get_job(job_id)
        if job is None:
            raise JobNotFoundException(job_id)
        return job

    # ------------------------------------------------------------------
    # Ejecución en background
    # ------------------------------------------------------------------

    async def _run_job(
        self, job_id: str, adapter: EntitySyncAdapter, records: List[Mapping[str, Any]]
    ) -> None:
        try:
            await adapter.prepare()

            units = adapter.build_units(records)
            group_count = adapter.group_count(units)
            counters = _Counters()
            if group_count is not None:
                self._ledger.update_progress(job_id, 0, 0, 0, group_count=group_count)

            limit = max(1, self._settings.IMPORT_CONCURRENCY_LIMIT)
            batch_size = max(1, self._settings.IMPORT_BATCH_SIZE)
            semaphore = asyncio.Semaphore(limit)
            tasks: List[asyncio.Task] = []

            for index, unit in enumerate(units):
                if index and index % batch_size == 0:
                    if self._ledger.is_cancelled(job_id):
                        break
                    await self._sleep(self._settings.IMPORT_DELAY_BETWEEN_BATCHES_SECONDS)
                if self._ledger.is_cancelled(job_id):
                    break
                await semaphore.acquire()
                if self._ledger.is_cancelled(job_id):
                    semaphore.release()
                    break
                tasks.append(
                    asyncio.create_task(
                        self._run_unit(job_id, adapter, unit, counters, group_count, semaphore)
                    )
                )

            if tasks:
                await asyncio.gather(*tasks)

            if self._ledger.is_cancelled(job_id):
                logger.warning(
                    f"[import] Job {job_id} cancelado tras {counters.processed}/{len(records)} registros"
                )
                return
            self._ledger.complete_job(job_id)
            logger.success(
                f"[import] Job {job_id} completado: {counters.success} exitos, {counters.error} errores"
            )
        except Exception as exc:
            message = exc.message if isinstance(exc, AppException) else str(exc)
            logger.exception(f"[import] Job {job_id} abortado: {message}")
            self._ledger.fail_job(job_id, message)

    async def _run_unit(
        self,
        job_id: str,
        adapter: EntitySyncAdapter,
        unit: SyncUnit,
        counters: _Counters,
        group_count: Optional[int],
        semaphore: asyncio.Semaphore,
    ) -> None:
        pending = [adapter.describe(record) for record in unit.records]
        try:
            async for outcome in adapter.process_unit(unit):
                if outcome.title in pending:
                    pending.remove(outcome.title)
                elif pending:
                    pending.pop(0)
                self._record(job_id, outcome, counters, group_count)
        except Exception as exc:
            # Los registros sin resultado se cuentan como error
            logger.exception(f"[import] Unidad {unit.key} interrumpida en el job {job_id}")
            message = exc.message if isinstance(exc, AppException) else str(exc)
            for title in pending:
                self._record(
                    job_id,
                    RecordOutcome(
                        title=title,
                        status=ResultStatus.ERROR,
                        message=message,
                        action=RecordAction.FAILED,
                    ),
                    counters,
                    group_count,
                )
        finally:
            semaphore.release()

    def _record(
        self,
        job_id: str,
        outcome: RecordOutcome,
        counters: _Counters,
        group_count: Optional[int],
    ) -> None:
        counters.processed += 1
        message = outcome.message
        if outcome.is_success:
            counters.success += 1
            if outcome.status == ResultStatus.SUCCESS and counters.success > self._settings.IMPORT_RESULT_DETAIL_LIMIT:
                message = "Creado" if outcome.created else "Actualizado"
        else:
            counters.error += 1

        entry = ImportResultEntry(
            title=outcome.title,
            status=outcome.status,
            message=message,
            action=outcome.action.value if outcome.action else None,
            primary_key=outcome.primary_key,
            created=outcome.created,
        )
        self._ledger.update_progress(
            job_id,
            counters.processed,
            counters.success,
            counters.error,
            new_results=[entry],
            group_count=group_count,
        )
