"""
Dependencias para inyeccion de casos de uso.
"""
from typing import Optional

from fastapi import Depends

from app.api.v1.dependencies.repository_deps import (
    get_document_store,
    get_job_repository,
    get_remote_api,
    get_retry_policy,
)
from app.application.use_cases.export_use_cases import ExportUseCases
from app.application.use_cases.import_use_cases import ImportUseCases
from app.core.config import settings
from app.domain.repositories.job_repository import IJobRepository
from app.infrastructure.external.document_store.store import DocumentStore
from app.infrastructure.external.remote_api.client import RemoteAPI
from app.infrastructure.external.sync_adapters import EntitySyncAdapter, build_adapter


def get_import_use_cases(
    ledger: IJobRepository = Depends(get_job_repository),
    remote: RemoteAPI = Depends(get_remote_api),
) -> ImportUseCases:
    """
    Dependencia para obtener los casos de uso de importación.

    Cada job recibe su propio adaptador y almacén de documentos sobre el
    cliente remoto compartido.

    Args:
        ledger: Ledger de jobs
        remote: Cliente de la API remota

    Returns:
        ImportUseCases: Instancia de casos de uso de importación
    """

    def adapter_factory(entity_type: str, document_type: Optional[str]) -> EntitySyncAdapter:
        retry = get_retry_policy()
        store = DocumentStore(remote, retry)
        return build_adapter(entity_type, remote, store, retry, settings, document_type=document_type)

    return ImportUseCases(ledger, adapter_factory, settings)


def get_export_use_cases(
    store: DocumentStore = Depends(get_document_store),
) -> ExportUseCases:
    """
    Dependencia para obtener los casos de uso de lectura y exportación.

    Returns:
        ExportUseCases: Instancia de casos de uso de exportación
    """
    return ExportUseCases(store)
