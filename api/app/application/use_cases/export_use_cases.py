"""
Casos de uso de lectura del espejo: tablas paginadas, conteos y exportes CSV.
"""

from __future__ import annotations

import csv
import io
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from app.application.dto.document_dto import (
    CompanyStatsDTO,
    DocumentCountDTO,
    DocumentDTO,
    DocumentPageDTO,
    PageInfoDTO,
)
from app.domain.entities.document import Document
from app.infrastructure.external.document_store.definitions import (
    COMPANY_DEFINITION,
    DEFINITIONS_BY_ENTITY,
)
from app.infrastructure.external.document_store.store import DocumentStore
from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.domain import UnsupportedEntityTypeException, ValidationException
from app.shared.utils.datetime_utils import DateTimeUtils


def flatten_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Aplana sub-objetos JSON a columnas `prefijo_clave`.
    Listas se unen con coma; fechas en ISO 8601.
    """
    flat: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, dict):
            for sub_key, sub_value in flatten_fields(value).items():
                flat[f"{key}_{sub_key}"] = sub_value
        elif isinstance(value, list):
            flat[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (datetime, date)):
            flat[key] = DateTimeUtils.to_iso_string(value)
        elif isinstance(value, bool):
            flat[key] = "true" if value else "false"
        else:
            flat[key] = "" if value is None else value
    return flat


def _document_dto(document: Document) -> DocumentDTO:
    return DocumentDTO(
        id=document.id,
        handle=document.handle,
        updated_at=document.updated_at,
        fields={
            k: DateTimeUtils.to_iso_string(v) if isinstance(v, (datetime, date)) else v
            for k, v in document.fields.items()
        },
    )


class ExportUseCases:
    """Lectura de documentos espejo por familia de entidades."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def _document_type(self, entity_type: str, document_type: Optional[str] = None) -> str:
        if entity_type == EntityType.DOCUMENTS.value:
            if not document_type:
                raise ValidationException("document_type es obligatorio", field="document_type")
            return document_type
        definition = DEFINITIONS_BY_ENTITY.get(entity_type)
        if definition is None:
            raise UnsupportedEntityTypeException(
                entity_type, sorted([*DEFINITIONS_BY_ENTITY, EntityType.DOCUMENTS.value])
            )
        return definition.type

    async def list_documents(
        self,
        entity_type: str,
        page_size: int = 20,
        cursor: Optional[str] = None,
        document_type: Optional[str] = None,
    ) -> DocumentPageDTO:
        doc_type = self._document_type(entity_type, document_type)
        page = await self._store.list(doc_type, page_size=page_size, cursor=cursor)
        total = await self._store.count(doc_type)
        return DocumentPageDTO(
            entity_type=entity_type,
            document_type=doc_type,
            documents=[_document_dto(d) for d in page.documents],
            page_info=PageInfoDTO(
                has_next_page=page.page_info.has_next_page,
                end_cursor=page.page_info.end_cursor,
            ),
            total=total,
        )

    async def count_documents(self, entity_type: str, document_type: Optional[str] = None) -> DocumentCountDTO:
        doc_type = self._document_type(entity_type, document_type)
        return DocumentCountDTO(
            entity_type=entity_type,
            document_type=doc_type,
            count=await self._store.count(doc_type),
        )

    async def export_csv(self, entity_type: str, document_type: Optional[str] = None) -> str:
        """
        Exporta todos los documentos del tipo como CSV.

        Returns:
            str: Contenido CSV (id, handle, updated_at y campos en orden de aparicion)
        """
        doc_type = self._document_type(entity_type, document_type)
        documents = await self._store.list_all(doc_type)

        rows: List[Dict[str, Any]] = []
        columns: Dict[str, None] = dict.fromkeys(("id", "handle", "updated_at"))
        for document in documents:
            row = flatten_fields(document.as_row())
            columns.update(dict.fromkeys(row))
            rows.append(row)

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore", restval="")
        writer.writeheader()
        writer.writerows(rows)
        logger.info(f"[export] {len(rows)} documentos exportados de {doc_type}")
        return buffer.getvalue()

    async def company_stats(self) -> CompanyStatsDTO:
        """Ubicaciones, empresas distintas y países distintos del espejo."""
        documents = await self._store.list_all(COMPANY_DEFINITION.type)
        companies = set()
        countries = set()
        for document in documents:
            company_id = document.get("company_id")
            if company_id:
                companies.add(company_id)
            shipping = document.get("shipping_address")
            if isinstance(shipping, dict) and shipping.get("country"):
                countries.add(str(shipping["country"]).strip().lower())
        return CompanyStatsDTO(locations=len(documents), companies=len(companies), countries=len(countries))
