"""
Entidades del dominio.
"""
from app.domain.entities.job import ImportJob, ImportResultEntry
from app.domain.entities.document import (
    Document,
    DocumentDefinition,
    DocumentPage,
    FieldDefinition,
    PageInfo,
)
from app.domain.entities.records import RecordOutcome, SyncOutcome, SyncUnit

__all__ = [
    "ImportJob",
    "ImportResultEntry",
    "Document",
    "DocumentDefinition",
    "DocumentPage",
    "FieldDefinition",
    "PageInfo",
    "RecordOutcome",
    "SyncOutcome",
    "SyncUnit",
]
