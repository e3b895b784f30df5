"""
Tipos intercambiados entre el orquestador y los adaptadores de sincronización.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.shared.constants.import_constants import RecordAction, ResultStatus


@dataclass(frozen=True)
class SyncOutcome:
    """Resultado de sincronizar un registro contra la API remota."""

    primary_key: str
    created: bool
    warnings: List[str] = field(default_factory=list)
    detail: Optional[str] = None


@dataclass(frozen=True)
class RecordOutcome:
    """Resultado reportado al ledger para un registro de entrada."""

    title: str
    status: ResultStatus
    message: str
    action: Optional[RecordAction] = None
    primary_key: Optional[str] = None
    created: Optional[bool] = None

    @property
    def is_success(self) -> bool:
        return self.status in (ResultStatus.SUCCESS, ResultStatus.WARNING)


@dataclass
class SyncUnit:
    """
    Unidad de trabajo del orquestador.
    Los registros de una unidad se procesan en serie y en orden.
    """

    key: str
    records: List[Dict[str, Any]]

    def __len__(self) -> int:
        return len(self.records)
