"""
Tests unitarios del ledger de jobs en memoria.

Verifica la maquina de estados:
- pending -> processing -> completed al alcanzar el total
- cancelled y failed son terminales y pegajosos
- contadores monotonos y processed acotado al total
"""
from __future__ import annotations

import threading

import pytest

from app.domain.entities.job import ImportResultEntry
from app.infrastructure.repositories.job_ledger import InMemoryJobLedger
from app.shared.constants.import_constants import JobStatus, ResultStatus, SYSTEM_ERROR_TITLE


def _entry(title: str, status: ResultStatus = ResultStatus.SUCCESS) -> ImportResultEntry:
    return ImportResultEntry(title=title, status=status, message="ok")


@pytest.fixture
def ledger() -> InMemoryJobLedger:
    return InMemoryJobLedger()


class TestJobLifecycle:
    """Transiciones de estado."""

    def test_create_job_starts_pending_with_zero_counters(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 3)
        job = ledger.get_job(job_id)

        assert job is not None
        assert job.status == JobStatus.PENDING
        assert job.entity_type == "companies"
        assert (job.processed_records, job.success_count, job.error_count) == (0, 0, 0)
        assert job.results == []
        assert job.progress == 0

    def test_job_ids_are_unique(self, ledger: InMemoryJobLedger) -> None:
        ids = {ledger.create_job("discounts", 1) for _ in range(20)}
        assert len(ids) == 20

    def test_get_unknown_job_returns_none(self, ledger: InMemoryJobLedger) -> None:
        assert ledger.get_job("missing") is None

    def test_first_update_moves_to_processing(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 3)
        ledger.update_progress(job_id, 1, 1, 0, [_entry("a")])

        job = ledger.get_job(job_id)
        assert job.status == JobStatus.PROCESSING
        assert job.progress == 33
        assert [r.title for r in job.results] == ["a"]

    def test_reaching_total_completes(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 2)
        ledger.update_progress(job_id, 1, 1, 0, [_entry("a")])
        ledger.update_progress(job_id, 2, 1, 1, [_entry("b", ResultStatus.ERROR)])

        job = ledger.get_job(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.progress == 100
        assert (job.success_count, job.error_count) == (1, 1)

    def test_group_count_is_stored(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 4)
        ledger.update_progress(job_id, 0, 0, 0, group_count=2)
        assert ledger.get_job(job_id).group_count == 2

    def test_zero_total_progress_is_zero(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 0)
        assert ledger.get_job(job_id).progress == 0


class TestMonotonicCounters:

    def test_processed_never_exceeds_total(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("collections", 2)
        ledger.update_progress(job_id, 5, 5, 0)
        assert ledger.get_job(job_id).processed_records == 2

    def test_counters_never_decrease(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("collections", 10)
        ledger.update_progress(job_id, 4, 3, 1)
        ledger.update_progress(job_id, 2, 1, 0)

        job = ledger.get_job(job_id)
        assert (job.processed_records, job.success_count, job.error_count) == (4, 3, 1)

    def test_get_job_returns_a_copy(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("collections", 2)
        snapshot = ledger.get_job(job_id)
        snapshot.results.append(_entry("intruso"))

        assert ledger.get_job(job_id).results == []


class TestTerminalStates:

    def test_cancelled_is_not_reverted_by_progress(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("discounts", 2)
        ledger.update_progress(job_id, 1, 1, 0)
        assert ledger.cancel_job(job_id) is True

        ledger.update_progress(job_id, 2, 2, 0, [_entry("tarde")])
        ledger.complete_job(job_id)

        job = ledger.get_job(job_id)
        assert job.status == JobStatus.CANCELLED
        # Los resultados de trabajo ya lanzado se siguen registrando
        assert job.processed_records == 2
        assert ledger.is_cancelled(job_id) is True

    def test_cancel_pending_job(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("discounts", 2)
        assert ledger.cancel_job(job_id) is True
        assert ledger.get_job(job_id).status == JobStatus.CANCELLED

    def test_cancel_completed_job_is_noop(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("discounts", 1)
        ledger.update_progress(job_id, 1, 1, 0)

        assert ledger.cancel_job(job_id) is False
        assert ledger.get_job(job_id).status == JobStatus.COMPLETED
        assert ledger.is_cancelled(job_id) is False

    def test_cancel_unknown_job_returns_false(self, ledger: InMemoryJobLedger) -> None:
        assert ledger.cancel_job("missing") is False

    def test_fail_job_appends_system_error(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 3)
        ledger.fail_job(job_id, "credenciales rechazadas")

        job = ledger.get_job(job_id)
        assert job.status == JobStatus.FAILED
        assert len(job.results) == 1
        assert job.results[0].title == SYSTEM_ERROR_TITLE
        assert job.results[0].status == ResultStatus.ERROR
        assert job.results[0].message == "credenciales rechazadas"

    def test_failed_job_is_not_completed_later(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 1)
        ledger.fail_job(job_id, "boom")
        ledger.complete_job(job_id)
        ledger.update_progress(job_id, 1, 1, 0)

        assert ledger.get_job(job_id).status == JobStatus.FAILED

    def test_fail_after_cancel_keeps_cancelled(self, ledger: InMemoryJobLedger) -> None:
        job_id = ledger.create_job("companies", 1)
        ledger.cancel_job(job_id)
        ledger.fail_job(job_id, "boom")

        job = ledger.get_job(job_id)
        assert job.status == JobStatus.CANCELLED
        assert job.results == []


class TestConcurrentUpdates:

    def test_parallel_result_appends_are_not_lost(self, ledger: InMemoryJobLedger) -> None:
        total = 200
        job_id = ledger.create_job("collections", total)

        def worker(offset: int) -> None:
            for i in range(offset, total, 4):
                ledger.update_progress(job_id, i + 1, i + 1, 0, [_entry(str(i))])

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        job = ledger.get_job(job_id)
        assert len(job.results) == total
        assert job.processed_records == total
        assert job.status == JobStatus.COMPLETED
