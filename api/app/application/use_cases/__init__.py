"""
Casos de uso de la aplicación.
"""
from .export_use_cases import ExportUseCases
from .import_use_cases import ImportUseCases

__all__ = ["ExportUseCases", "ImportUseCases"]
