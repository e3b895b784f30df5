"""
Excepciones de integración con la API remota.

La clasificacion importa al orquestador:
- RemoteTransientError: se reintenta con backoff.
- RemoteValidationError / RemoteConflictError: error del registro, sin reintento.
- PreconditionFailedError: aborta el job completo.
"""
from typing import Any, Dict, List, Optional

from app.shared.exceptions.base import AppException


class RemoteApiError(AppException):
    """Error genérico de la API remota."""

    def __init__(
        self,
        message: str,
        error_code: str = "REMOTE_API_ERROR",
        status_code: int = 502,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class RemoteTransientError(RemoteApiError):
    """Rate limit, throttling, 5xx o fallo de transporte."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(
            message=message,
            error_code="REMOTE_THROTTLED",
            status_code=503,
            details={"retry_after": retry_after} if retry_after is not None else None,
        )
        self.retry_after = retry_after


class RemoteValidationError(RemoteApiError):
    """La API remota rechazo los valores enviados (userErrors)."""

    def __init__(self, message: str, user_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            message=message,
            error_code="REMOTE_VALIDATION_ERROR",
            status_code=422,
            details={"user_errors": user_errors or []},
        )
        self.user_errors = user_errors or []


class RemoteConflictError(RemoteValidationError):
    """Colisión de unicidad sobre un valor (email, código, handle)."""


class PreconditionFailedError(AppException):
    """Chequeo previo fallido (credenciales, permisos, definición inexistente)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=412,
            error_code="PRECONDITION_FAILED",
            details=details
        )
