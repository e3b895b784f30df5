"""
Constantes del motor de importación.
Define estados de job, estados de resultado y familias de entidades.
"""
from enum import Enum


class JobStatus(str, Enum):
    """Estados posibles de un job de importación."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ResultStatus(str, Enum):
    """Resultado de un registro individual."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class RecordAction(str, Enum):
    """Acción realizada sobre un registro."""
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class EntityType(str, Enum):
    """Familias de entidades con adaptador de sincronización."""
    COMPANIES = "companies"
    COLLECTIONS = "collections"
    DISCOUNTS = "discounts"
    DOCUMENTS = "documents"


# Título del resultado sintético que agrega failJob
SYSTEM_ERROR_TITLE = "System Error"

# Dominio de los emails autogenerados para contactos de empresa
GENERATED_EMAIL_DOMAIN = "company-local.com"
