"""
Dependencias para inyeccion de repositorios y clientes externos.
"""
from typing import Optional

from app.core.config import settings
from app.domain.repositories.job_repository import IJobRepository
from app.infrastructure.external.document_store.store import DocumentStore
from app.infrastructure.external.remote_api.client import GraphQLRemoteAPI, RemoteAPI
from app.infrastructure.external.remote_api.retry import RetryPolicy
from app.infrastructure.repositories.job_ledger import job_ledger


_remote_api: Optional[GraphQLRemoteAPI] = None


def get_job_repository() -> IJobRepository:
    """
    Dependencia para obtener el ledger de jobs.

    Returns:
        IJobRepository: Ledger en memoria compartido por el proceso
    """
    return job_ledger


def get_remote_api() -> RemoteAPI:
    """
    Cliente GraphQL compartido (se crea en el primer uso).

    Returns:
        RemoteAPI: Cliente de la API remota
    """
    global _remote_api
    if _remote_api is None:
        _remote_api = GraphQLRemoteAPI.from_settings(settings)
    return _remote_api


async def close_remote_api() -> None:
    """Cierra el cliente HTTP compartido si fue creado."""
    global _remote_api
    if _remote_api is not None:
        await _remote_api.aclose()
        _remote_api = None


def get_retry_policy() -> RetryPolicy:
    return RetryPolicy.from_settings(settings)


def get_document_store() -> DocumentStore:
    """
    Dependencia para obtener el almacén de documentos.

    Returns:
        DocumentStore: Almacén sobre el cliente remoto compartido
    """
    return DocumentStore(get_remote_api(), get_retry_policy())
