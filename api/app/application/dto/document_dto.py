"""
DTOs de lectura de documentos espejo (tablas y exportes).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class DocumentDTO(BaseModel):
    id: str
    handle: Optional[str] = None
    updated_at: Optional[str] = None
    fields: Dict[str, Any]


class PageInfoDTO(BaseModel):
    has_next_page: bool
    end_cursor: Optional[str] = None


class DocumentPageDTO(BaseModel):
    """Página de documentos de un tipo."""

    entity_type: str
    document_type: str
    documents: List[DocumentDTO]
    page_info: PageInfoDTO
    total: Optional[int] = None


class DocumentCountDTO(BaseModel):
    entity_type: str
    document_type: str
    count: int


class CompanyStatsDTO(BaseModel):
    """Totales del espejo de empresas."""

    locations: int
    companies: int
    countries: int
