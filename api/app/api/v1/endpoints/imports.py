"""
Endpoints de importación masiva.

Flujo:
- POST /imports/{entity_type} inicia un job en background (202)
- GET /imports/jobs/{job_id} devuelve el estado (polling)
- POST /imports/jobs/{job_id}/cancel solicita cancelación cooperativa
"""
from fastapi import APIRouter, Depends, status

from app.application.dto.import_dto import (
    CancelJobResponseDTO,
    ImportJobResponseDTO,
    ImportJobStatusDTO,
    ImportRequestDTO,
)
from app.application.use_cases.import_use_cases import ImportUseCases
from app.api.v1.dependencies.use_case_deps import get_import_use_cases


router = APIRouter(prefix="/imports", tags=["Imports"])


@router.post(
    "/{entity_type}",
    response_model=ImportJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Iniciar una importacion masiva"
)
async def start_import(
    entity_type: str,
    dto: ImportRequestDTO,
    use_cases: ImportUseCases = Depends(get_import_use_cases)
) -> ImportJobResponseDTO:
    """
    Valida el archivo y lanza el job de importación.

    Args:
        entity_type: companies, collections, discounts o documents
        dto: Registros del archivo y tipo de documento opcional
        use_cases: Casos de uso de importación (inyectado)

    Returns:
        ImportJobResponseDTO: Job creado (estado pending)
    """
    return await use_cases.start_import(entity_type, dto.records, document_type=dto.document_type)


@router.get(
    "/jobs/{job_id}",
    response_model=ImportJobStatusDTO,
    summary="Obtener estado de un job de importacion (polling)"
)
async def get_import_job_status(
    job_id: str,
    use_cases: ImportUseCases = Depends(get_import_use_cases)
) -> ImportJobStatusDTO:
    return await use_cases.get_job_status(job_id)


@router.post(
    "/jobs/{job_id}/cancel",
    response_model=CancelJobResponseDTO,
    summary="Cancelar un job de importacion"
)
async def cancel_import_job(
    job_id: str,
    use_cases: ImportUseCases = Depends(get_import_use_cases)
) -> CancelJobResponseDTO:
    """
    El trabajo ya lanzado termina; no se lanzan nuevas unidades.
    Cancelar un job terminado no tiene efecto.
    """
    return await use_cases.cancel_job(job_id)
