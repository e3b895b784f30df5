"""
DTOs para jobs de importación masiva.

Flujo:
- POST inicia el job y responde de inmediato (202) con su ID
- el frontend consulta el estado cada ~2s hasta un estado terminal
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ImportRequestDTO(BaseModel):
    """Registros ya parseados del CSV (clave -> valor)."""

    records: List[Dict[str, Any]] = Field(..., description="Filas del archivo, en orden")
    document_type: Optional[str] = Field(
        None, description="Tipo de documento destino (solo para entity_type=documents)"
    )

    @field_validator("records")
    @classmethod
    def records_cannot_be_empty(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not v:
            raise ValueError("El archivo esta vacio o no tiene filas validas")
        return v


class ImportResultDTO(BaseModel):
    title: str
    status: str
    message: str
    action: Optional[str] = None
    primary_key: Optional[str] = None
    created: Optional[bool] = None


class ImportJobResponseDTO(BaseModel):
    """Respuesta inmediata al iniciar un job."""

    job_id: str
    status: str
    entity_type: str
    total_records: int
    created_at: datetime
    message: str


class ImportJobStatusDTO(BaseModel):
    """Estado actual del job (polling)."""

    job_id: str
    status: str
    entity_type: str
    progress: int
    total_records: int
    processed_records: int
    success_count: int
    error_count: int
    group_count: Optional[int] = None
    results: List[ImportResultDTO] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class CancelJobResponseDTO(BaseModel):
    job_id: str
    status: str
    message: str
