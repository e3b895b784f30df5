"""
Adaptadores de sincronización por familia de entidades.
"""
from typing import Dict, Optional, Type

from app.core.config import Settings
from app.infrastructure.external.document_store.store import DocumentStore
from app.infrastructure.external.remote_api.client import RemoteAPI
from app.infrastructure.external.remote_api.retry import RetryPolicy
from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.domain import UnsupportedEntityTypeException

from .base import EntitySyncAdapter
from .collections import CollectionSyncAdapter
from .companies import CompanySyncAdapter
from .discounts import DiscountSyncAdapter
from .documents import DocumentSyncAdapter

ADAPTERS: Dict[str, Type[EntitySyncAdapter]] = {
    EntityType.COMPANIES.value: CompanySyncAdapter,
    EntityType.COLLECTIONS.value: CollectionSyncAdapter,
    EntityType.DISCOUNTS.value: DiscountSyncAdapter,
    EntityType.DOCUMENTS.value: DocumentSyncAdapter,
}


def build_adapter(
    entity_type: str,
    remote: RemoteAPI,
    store: DocumentStore,
    retry: RetryPolicy,
    settings: Settings,
    document_type: Optional[str] = None,
) -> EntitySyncAdapter:
    """
    Instancia el adaptador de una familia de entidades.

    Raises:
        UnsupportedEntityTypeException: Si la familia no tiene adaptador
    """
    adapter_class = ADAPTERS.get(entity_type)
    if adapter_class is None:
        raise UnsupportedEntityTypeException(entity_type, sorted(ADAPTERS))
    if adapter_class is DocumentSyncAdapter:
        return DocumentSyncAdapter(remote, store, retry, settings, document_type=document_type)
    return adapter_class(remote, store, retry, settings)


__all__ = [
    "ADAPTERS",
    "CollectionSyncAdapter",
    "CompanySyncAdapter",
    "DiscountSyncAdapter",
    "DocumentSyncAdapter",
    "EntitySyncAdapter",
    "build_adapter",
]
