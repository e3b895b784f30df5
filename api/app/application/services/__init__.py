"""
Servicios de aplicación.

Contiene la lógica de negocio reutilizable que no pertenece
a un caso de uso especifico.
"""
from app.application.services.shape_validation import (
    SIGNATURES,
    detect_entity_type,
    validate_shape,
)

__all__ = [
    "SIGNATURES",
    "detect_entity_type",
    "validate_shape",
]
