"""
Tests del contrato HTTP de importaciones, lectura del espejo y exportes.

Los casos de uso se reemplazan via dependency_overrides.
"""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.api.v1.dependencies.use_case_deps import get_export_use_cases, get_import_use_cases
from app.application.dto.document_dto import CompanyStatsDTO
from app.application.dto.import_dto import (
    CancelJobResponseDTO,
    ImportJobResponseDTO,
    ImportJobStatusDTO,
    ImportResultDTO,
)
from app.shared.exceptions.domain import (
    InvalidImportFileException,
    JobNotFoundException,
    UnsupportedEntityTypeException,
)


NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def import_use_cases() -> AsyncMock:
    uc = AsyncMock()
    uc.start_import = AsyncMock(return_value=ImportJobResponseDTO(
        job_id="job-1",
        status="pending",
        entity_type="collections",
        total_records=2,
        created_at=NOW,
        message="Import started",
    ))
    uc.get_job_status = AsyncMock(return_value=ImportJobStatusDTO(
        job_id="job-1",
        status="processing",
        entity_type="collections",
        progress=50,
        total_records=2,
        processed_records=1,
        success_count=1,
        error_count=0,
        results=[ImportResultDTO(title="Verano", status="success", message="Creada", action="created")],
        created_at=NOW,
        updated_at=NOW,
    ))
    uc.cancel_job = AsyncMock(return_value=CancelJobResponseDTO(
        job_id="job-1", status="cancelled", message="Import cancelled"
    ))
    return uc


@pytest.fixture
def export_use_cases() -> AsyncMock:
    uc = AsyncMock()
    uc.export_csv = AsyncMock(return_value="id,handle,updated_at,title\r\n1,col-a,,A\r\n")
    uc.company_stats = AsyncMock(return_value=CompanyStatsDTO(locations=3, companies=2, countries=1))
    return uc


@pytest.fixture
def app_with_mocks(import_use_cases: AsyncMock, export_use_cases: AsyncMock):
    """App FastAPI con los casos de uso mockeados."""
    from main import create_application
    app = create_application()
    app.dependency_overrides[get_import_use_cases] = lambda: import_use_cases
    app.dependency_overrides[get_export_use_cases] = lambda: export_use_cases
    yield app
    app.dependency_overrides.clear()


async def _request(app, method: str, url: str, **kwargs):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, url, **kwargs)


@pytest.mark.asyncio
async def test_start_import_returns_202(app_with_mocks, import_use_cases: AsyncMock) -> None:
    records = [{"title": "Verano"}, {"title": "Invierno"}]
    response = await _request(app_with_mocks, "POST", "/api/v1/imports/collections", json={"records": records})

    assert response.status_code == 202
    data = response.json()
    assert data["job_id"] == "job-1"
    assert data["status"] == "pending"
    import_use_cases.start_import.assert_awaited_once_with("collections", records, document_type=None)


@pytest.mark.asyncio
async def test_start_import_rejects_empty_records(app_with_mocks, import_use_cases: AsyncMock) -> None:
    response = await _request(app_with_mocks, "POST", "/api/v1/imports/collections", json={"records": []})

    assert response.status_code == 422
    assert response.json()["error"] == "VALIDATION_ERROR"
    import_use_cases.start_import.assert_not_awaited()


@pytest.mark.asyncio
async def test_wrong_file_type_returns_400(app_with_mocks, import_use_cases: AsyncMock) -> None:
    import_use_cases.start_import.side_effect = InvalidImportFileException(
        expected_type="collections",
        detected_type="discounts",
        message="This appears to be a discount file. Please use the Discounts import page to import discount data.",
    )

    response = await _request(
        app_with_mocks, "POST", "/api/v1/imports/collections", json={"records": [{"discount_type": "x"}]}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "INVALID_FILE_TYPE"
    assert body["details"] == {"expected_type": "collections", "detected_type": "discounts"}


@pytest.mark.asyncio
async def test_unsupported_entity_type_returns_400(app_with_mocks, import_use_cases: AsyncMock) -> None:
    import_use_cases.start_import.side_effect = UnsupportedEntityTypeException("products", ["collections"])

    response = await _request(app_with_mocks, "POST", "/api/v1/imports/products", json={"records": [{"a": 1}]})

    assert response.status_code == 400
    assert response.json()["error"] == "UNSUPPORTED_ENTITY_TYPE"


@pytest.mark.asyncio
async def test_job_status(app_with_mocks) -> None:
    response = await _request(app_with_mocks, "GET", "/api/v1/imports/jobs/job-1")

    assert response.status_code == 200
    data = response.json()
    assert data["progress"] == 50
    assert data["results"][0]["title"] == "Verano"


@pytest.mark.asyncio
async def test_unknown_job_returns_404(app_with_mocks, import_use_cases: AsyncMock) -> None:
    import_use_cases.get_job_status.side_effect = JobNotFoundException("nope")

    response = await _request(app_with_mocks, "GET", "/api/v1/imports/jobs/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "JOB_NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_job(app_with_mocks, import_use_cases: AsyncMock) -> None:
    response = await _request(app_with_mocks, "POST", "/api/v1/imports/jobs/job-1/cancel")

    assert response.status_code == 200
    assert response.json()["message"] == "Import cancelled"
    import_use_cases.cancel_job.assert_awaited_once_with("job-1")


@pytest.mark.asyncio
async def test_export_csv(app_with_mocks, export_use_cases: AsyncMock) -> None:
    response = await _request(app_with_mocks, "GET", "/api/v1/exports/collections.csv")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"] == 'attachment; filename="collections.csv"'
    assert response.text.startswith("id,handle,updated_at,title")
    export_use_cases.export_csv.assert_awaited_once_with("collections", document_type=None)


@pytest.mark.asyncio
async def test_company_stats(app_with_mocks) -> None:
    response = await _request(app_with_mocks, "GET", "/api/v1/documents/companies/stats")

    assert response.status_code == 200
    assert response.json() == {"locations": 3, "companies": 2, "countries": 1}
