"""
Endpoints de exportación CSV.
"""
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.application.use_cases.export_use_cases import ExportUseCases
from app.api.v1.dependencies.use_case_deps import get_export_use_cases


router = APIRouter(prefix="/exports", tags=["Exports"])


@router.get(
    "/{entity_type}.csv",
    response_class=Response,
    summary="Exportar documentos de una familia como CSV"
)
async def export_csv(
    entity_type: str,
    document_type: Optional[str] = None,
    use_cases: ExportUseCases = Depends(get_export_use_cases)
) -> Response:
    """
    Exporta todos los documentos espejo de la familia.

    Args:
        entity_type: companies, collections, discounts o documents
        document_type: Tipo de documento (solo para documents)
        use_cases: Casos de uso de exportación (inyectado)

    Returns:
        Response: Archivo CSV adjunto
    """
    content = await use_cases.export_csv(entity_type, document_type=document_type)
    filename = f"{document_type or entity_type}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
