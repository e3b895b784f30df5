"""
Data Transfer Objects (DTOs) para la capa de aplicación.
"""
from .import_dto import (
    CancelJobResponseDTO,
    ImportJobResponseDTO,
    ImportJobStatusDTO,
    ImportRequestDTO,
    ImportResultDTO,
)
from .document_dto import (
    CompanyStatsDTO,
    DocumentCountDTO,
    DocumentDTO,
    DocumentPageDTO,
    PageInfoDTO,
)

__all__ = [
    "CancelJobResponseDTO",
    "ImportJobResponseDTO",
    "ImportJobStatusDTO",
    "ImportRequestDTO",
    "ImportResultDTO",
    "CompanyStatsDTO",
    "DocumentCountDTO",
    "DocumentDTO",
    "DocumentPageDTO",
    "PageInfoDTO",
]
