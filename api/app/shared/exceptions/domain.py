"""
Excepciones relacionadas con la lógica de dominio de importación.
"""
from typing import Optional

from app.shared.exceptions.base import AppException


class DomainException(AppException):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, error_code: str = "DOMAIN_ERROR", details=None):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class ValidationException(DomainException):
    """Excepción para errores de validación de la entrada."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details=details
        )


class InvalidImportFileException(DomainException):
    """
    El archivo corresponde a otra familia de entidades.

    Se lanza antes de crear el job, sin llamadas remotas.
    """

    def __init__(self, expected_type: str, detected_type: str, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_FILE_TYPE",
            details={"expected_type": expected_type, "detected_type": detected_type}
        )
        self.expected_type = expected_type
        self.detected_type = detected_type


class UnsupportedEntityTypeException(DomainException):
    """Tipo de entidad sin adaptador de sincronización."""

    def __init__(self, entity_type: str, supported: list[str]):
        super().__init__(
            message=f"Tipo de entidad '{entity_type}' no soportado",
            error_code="UNSUPPORTED_ENTITY_TYPE",
            details={"entity_type": entity_type, "supported": supported}
        )


class JobNotFoundException(DomainException):
    """Excepción cuando no existe un job de importación."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job con ID '{job_id}' no encontrado",
            error_code="JOB_NOT_FOUND",
            details={"job_id": job_id}
        )
        self.status_code = 404
