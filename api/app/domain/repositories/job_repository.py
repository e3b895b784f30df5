"""
Interfaz del registro de jobs de importación.
Define el contrato que debe cumplir cualquier implementacion
(en memoria hoy; clave-valor o tabla si se necesita durabilidad).
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from app.domain.entities.job import ImportJob, ImportResultEntry


class IJobRepository(ABC):
    """
    Interfaz del ledger de jobs.
    Todas las mutaciones deben ser seguras ante llamadas concurrentes
    de varias tareas del mismo job.
    """

    @abstractmethod
    def create_job(self, entity_type: str, total_records: int) -> str:
        """
        Crea un job en estado pending con contadores en cero.

        Args:
            entity_type: Familia de entidades que procesa el job
            total_records: Cantidad de registros de entrada

        Returns:
            str: ID del job creado
        """
        pass

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[ImportJob]:
        """
        Obtiene una copia del job.

        Args:
            job_id: ID del job

        Returns:
            Optional[ImportJob]: Snapshot del job o None si no existe
        """
        pass

    @abstractmethod
    def update_progress(
        self,
        job_id: str,
        processed: int,
        success: int,
        error: int,
        new_results: Sequence[ImportResultEntry] = (),
        group_count: Optional[int] = None,
    ) -> None:
        """
        Fija contadores absolutos y agrega resultados.
        Pasa pending -> processing y processing -> completed al llegar al total.
        """
        pass

    @abstractmethod
    def complete_job(self, job_id: str) -> None:
        """Marca completed salvo que el job ya este en estado terminal."""
        pass

    @abstractmethod
    def fail_job(self, job_id: str, error_message: str) -> None:
        """Marca failed y agrega un único resultado de error de sistema."""
        pass

    @abstractmethod
    def cancel_job(self, job_id: str) -> bool:
        """
        Cancela un job pending/processing.

        Returns:
            bool: True si el job quedo cancelado por esta llamada
        """
        pass

    @abstractmethod
    def is_cancelled(self, job_id: str) -> bool:
        """Lectura barata usada como chequeo de cancelación cooperativa."""
        pass
