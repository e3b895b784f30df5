"""
Endpoints de lectura del espejo de documentos (tablas del frontend).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.application.dto.document_dto import (
    CompanyStatsDTO,
    DocumentCountDTO,
    DocumentPageDTO,
)
from app.application.use_cases.export_use_cases import ExportUseCases
from app.api.v1.dependencies.use_case_deps import get_export_use_cases


router = APIRouter(prefix="/documents", tags=["Documents"])


@router.get(
    "/companies/stats",
    response_model=CompanyStatsDTO,
    summary="Totales del espejo de empresas"
)
async def get_company_stats(
    use_cases: ExportUseCases = Depends(get_export_use_cases)
) -> CompanyStatsDTO:
    return await use_cases.company_stats()


@router.get(
    "/{entity_type}",
    response_model=DocumentPageDTO,
    summary="Listar documentos de una familia (paginado por cursor)"
)
async def list_documents(
    entity_type: str,
    page_size: int = Query(20, ge=1, le=250),
    cursor: Optional[str] = None,
    document_type: Optional[str] = None,
    use_cases: ExportUseCases = Depends(get_export_use_cases)
) -> DocumentPageDTO:
    """
    Lista documentos espejo con paginación por cursor.

    Args:
        entity_type: companies, collections, discounts o documents
        page_size: Documentos por página
        cursor: Cursor de la página anterior (end_cursor)
        document_type: Tipo de documento (solo para documents)
        use_cases: Casos de uso de exportación (inyectado)

    Returns:
        DocumentPageDTO: Página de documentos
    """
    return await use_cases.list_documents(
        entity_type, page_size=page_size, cursor=cursor, document_type=document_type
    )


@router.get(
    "/{entity_type}/count",
    response_model=DocumentCountDTO,
    summary="Contar documentos de una familia"
)
async def count_documents(
    entity_type: str,
    document_type: Optional[str] = None,
    use_cases: ExportUseCases = Depends(get_export_use_cases)
) -> DocumentCountDTO:
    return await use_cases.count_documents(entity_type, document_type=document_type)
