"""
Entidad Job: unidad de trabajo en background con estado y resultados acumulados.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from app.shared.constants.import_constants import JobStatus, ResultStatus


@dataclass(frozen=True)
class ImportResultEntry:
    """Resultado visible para el usuario de un registro procesado."""

    title: str
    status: ResultStatus
    message: str = ""
    action: Optional[str] = None
    primary_key: Optional[str] = None
    created: Optional[bool] = None


@dataclass
class ImportJob:
    """
    Job de importación.

    Los contadores solo crecen. processed_records nunca supera total_records.
    La instancia pertenece al ledger; los lectores reciben copias.
    """

    id: str
    entity_type: str
    total_records: int
    status: JobStatus = JobStatus.PENDING
    processed_records: int = 0
    success_count: int = 0
    error_count: int = 0
    group_count: Optional[int] = None
    results: List[ImportResultEntry] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress(self) -> int:
        """Porcentaje entero 0-100."""
        if self.total_records <= 0:
            return 0
        return round(self.processed_records / self.total_records * 100)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
