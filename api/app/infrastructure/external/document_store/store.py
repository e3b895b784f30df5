"""
Adaptador del almacén de documentos tipados.

El almacén vive dentro de la API remota: cada operación es una llamada
GraphQL que pasa por la RetryPolicy compartida.

Operaciones:
- ensure_schema: idempotente (consulta por tipo, crea solo si falta)
- create / update: fallan con RemoteValidationError listando userErrors
- get_by_handle: primitiva de lookup previa a escribir
- upsert: create-if-absent-else-update por handle
- list / count: enumeracion paginada para exportes y tablas
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from loguru import logger

from app.domain.entities.document import (
    Document,
    DocumentDefinition,
    DocumentPage,
    FieldDefinition,
    PageInfo,
)
from app.infrastructure.external.document_store.codecs import decode_field, encode_fields
from app.infrastructure.external.document_store.definitions import (
    COLLECTION_DEFINITION,
    COMPANY_DEFINITION,
    DISCOUNT_DEFINITION,
)
from app.infrastructure.external.remote_api.client import RemoteAPI
from app.infrastructure.external.remote_api.ids import dig, nodes, user_error_messages
from app.infrastructure.external.remote_api.retry import RetryPolicy
from app.shared.exceptions.remote import PreconditionFailedError, RemoteValidationError


DEFINITION_BY_TYPE_QUERY = """
query MetaobjectDefinitionByType($type: String!) {
  metaobjectDefinitionByType(type: $type) {
    id
    name
    type
    fieldDefinitions { key name type { name } }
  }
}
"""

CREATE_DEFINITION_MUTATION = """
mutation CreateMetaobjectDefinition($definition: MetaobjectDefinitionCreateInput!) {
  metaobjectDefinitionCreate(definition: $definition) {
    metaobjectDefinition { id type }
    userErrors { field message }
  }
}
"""

CREATE_DOCUMENT_MUTATION = """
mutation CreateMetaobject($metaobject: MetaobjectCreateInput!) {
  metaobjectCreate(metaobject: $metaobject) {
    metaobject { id handle updatedAt }
    userErrors { field message }
  }
}
"""

UPDATE_DOCUMENT_MUTATION = """
mutation UpdateMetaobject($id: ID!, $metaobject: MetaobjectUpdateInput!) {
  metaobjectUpdate(id: $id, metaobject: $metaobject) {
    metaobject { id handle type updatedAt }
    userErrors { field message }
  }
}
"""

FIND_BY_HANDLE_QUERY = """
query FindMetaobjectByHandle($type: String!, $query: String!) {
  metaobjects(first: 1, type: $type, query: $query) {
    nodes { id handle type updatedAt fields { key value type } }
  }
}
"""

LIST_DOCUMENTS_QUERY = """
query ListMetaobjects($type: String!, $first: Int!, $after: String) {
  metaobjects(type: $type, first: $first, after: $after, reverse: true) {
    nodes { id handle type updatedAt fields { key value type } }
    pageInfo { hasNextPage endCursor }
  }
}
"""

COUNT_DOCUMENTS_QUERY = """
query CountMetaobjects($type: String!) {
  metaobjectDefinitionByType(type: $type) { metaobjectsCount }
}
"""

_KNOWN_DEFINITIONS = {
    d.type: d for d in (COMPANY_DEFINITION, COLLECTION_DEFINITION, DISCOUNT_DEFINITION)
}


def _parse_document(node: Mapping[str, Any], fallback_type: str) -> Document:
    """Decodifica cada campo según su tipo declarado (fallback: string crudo)."""
    fields: Dict[str, Any] = {}
    for f in node.get("fields") or []:
        if not isinstance(f, Mapping) or not f.get("key"):
            continue
        fields[f["key"]] = decode_field(f.get("value"), f.get("type"))
    return Document(
        id=str(node.get("id", "")),
        type=str(node.get("type") or fallback_type),
        handle=node.get("handle"),
        fields=fields,
        updated_at=node.get("updatedAt"),
    )


def _parse_definition(node: Mapping[str, Any]) -> DocumentDefinition:
    field_definitions = []
    for f in node.get("fieldDefinitions") or []:
        if not isinstance(f, Mapping) or not f.get("key"):
            continue
        type_value = f.get("type")
        type_name = type_value.get("name") if isinstance(type_value, Mapping) else type_value
        field_definitions.append(
            FieldDefinition(key=f["key"], name=f.get("name") or f["key"], type=str(type_name or ""))
        )
    return DocumentDefinition(
        type=str(node.get("type", "")),
        name=str(node.get("name", "")),
        field_definitions=tuple(field_definitions),
        id=node.get("id"),
    )


class DocumentStore:
    """CRUD tipado sobre documentos remotos."""

    def __init__(self, remote: RemoteAPI, retry: Optional[RetryPolicy] = None) -> None:
        self._remote = remote
        self._retry = retry or RetryPolicy()
        self._ensured: Set[str] = set()
        self._definitions: Dict[str, DocumentDefinition] = dict(_KNOWN_DEFINITIONS)

    async def _query(self, operation: str, variables: Dict[str, Any], description: str) -> Dict[str, Any]:
        return await self._retry.run(lambda: self._remote.query(operation, variables), description=description)

    def _type_lookup(self, doc_type: Optional[str]):
        definition = self._definitions.get(doc_type or "")
        if definition is None:
            return None
        return definition.field_type

    async def get_definition(self, doc_type: str) -> Optional[DocumentDefinition]:
        """
        Obtiene la definición remota de un tipo.

        Returns:
            Optional[DocumentDefinition]: Definición o None si el tipo no existe
        """
        data = await self._query(DEFINITION_BY_TYPE_QUERY, {"type": doc_type}, f"definicion {doc_type}")
        node = dig(data, "metaobjectDefinitionByType")
        if not isinstance(node, Mapping):
            return None
        definition = _parse_definition(node)
        if not definition.type:
            definition = DocumentDefinition(
                type=doc_type,
                name=definition.name,
                field_definitions=definition.field_definitions,
                id=definition.id,
            )
        self._definitions[doc_type] = definition
        return definition

    async def ensure_schema(self, definition: DocumentDefinition) -> None:
        """
        Asegura que exista el esquema del tipo (idempotente).

        Raises:
            PreconditionFailedError: Si la creación falla (primer userError)
        """
        if definition.type in self._ensured:
            return
        self._definitions.setdefault(definition.type, definition)

        existing = await self.get_definition(definition.type)
        if existing is None:
            variables = {
                "definition": {
                    "name": definition.name,
                    "type": definition.type,
                    "fieldDefinitions": [
                        {"key": f.key, "name": f.name, "type": f.type}
                        for f in definition.field_definitions
                    ],
                    "access": {"storefront": "PUBLIC_READ"},
                }
            }
            data = await self._query(CREATE_DEFINITION_MUTATION, variables, f"crear definicion {definition.type}")
            errors = dig(data, "metaobjectDefinitionCreate", "userErrors") or []
            if errors:
                message = str(errors[0].get("message", "error desconocido"))
                raise PreconditionFailedError(
                    f"No se pudo crear la definicion '{definition.type}': {message}",
                    details={"user_errors": errors},
                )
            logger.info(f"[document-store] Definicion creada: {definition.type}")
            # La definición local manda para codificar campos
            self._definitions[definition.type] = definition
        self._ensured.add(definition.type)

    async def create(
        self,
        doc_type: str,
        fields: Dict[str, Any],
        handle: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Document:
        """
        Crea un documento.

        Raises:
            RemoteValidationError: Con los userErrors de la API
        """
        metaobject: Dict[str, Any] = {
            "type": doc_type,
            "fields": encode_fields(fields, self._type_lookup(doc_type)),
        }
        if handle:
            metaobject["handle"] = handle
        if status:
            metaobject["capabilities"] = {"publishable": {"status": status}}
        data = await self._query(CREATE_DOCUMENT_MUTATION, {"metaobject": metaobject}, f"crear {doc_type}")
        payload = dig(data, "metaobjectCreate") or {}
        errors = payload.get("userErrors") or []
        if errors:
            raise RemoteValidationError(user_error_messages(errors), user_errors=errors)
        node = payload.get("metaobject")
        if not isinstance(node, Mapping) or not node.get("id"):
            raise RemoteValidationError(f"La API no devolvio el documento creado ({doc_type})")
        return Document(
            id=str(node["id"]),
            type=doc_type,
            handle=node.get("handle") or handle,
            fields=dict(fields),
            updated_at=node.get("updatedAt"),
        )

    async def update(self, document_id: str, fields: Dict[str, Any], doc_type: Optional[str] = None) -> Document:
        """Actualiza campos de un documento existente."""
        variables = {
            "id": document_id,
            "metaobject": {"fields": encode_fields(fields, self._type_lookup(doc_type))},
        }
        data = await self._query(UPDATE_DOCUMENT_MUTATION, variables, f"actualizar {document_id}")
        payload = dig(data, "metaobjectUpdate") or {}
        errors = payload.get("userErrors") or []
        if errors:
            raise RemoteValidationError(user_error_messages(errors), user_errors=errors)
        node = payload.get("metaobject") or {}
        return Document(
            id=str(node.get("id") or document_id),
            type=str(node.get("type") or doc_type or ""),
            handle=node.get("handle"),
            fields=dict(fields),
            updated_at=node.get("updatedAt"),
        )

    async def get_by_handle(self, doc_type: str, handle: str) -> Optional[Document]:
        data = await self._query(
            FIND_BY_HANDLE_QUERY,
            {"type": doc_type, "query": f'handle:"{handle}"'},
            f"buscar {doc_type}/{handle}",
        )
        for node in nodes(data, "metaobjects"):
            # El filtro de búsqueda remoto es aproximado: se exige igualdad
            if node.get("handle") in (None, handle):
                return _parse_document(node, doc_type)
        return None

    async def upsert(
        self,
        doc_type: str,
        handle: str,
        fields: Dict[str, Any],
        create_fields: Optional[Dict[str, Any]] = None,
        status: Optional[str] = None,
    ) -> Tuple[Document, bool]:
        """
        Create-if-absent-else-update por handle.

        Args:
            doc_type: Tipo de documento
            handle: Handle determinístico
            fields: Campos a escribir siempre
            create_fields: Campos extra solo al crear (p.ej. created_at)
            status: Estado de publicación al crear (ACTIVE o DRAFT)

        Returns:
            Tuple[Document, bool]: Documento y True si fue creado
        """
        existing = await self.get_by_handle(doc_type, handle)
        if existing is not None:
            return await self.update(existing.id, fields, doc_type=doc_type), False
        return await self.create(
            doc_type, {**fields, **(create_fields or {})}, handle=handle, status=status
        ), True

    async def list(self, doc_type: str, page_size: int = 20, cursor: Optional[str] = None) -> DocumentPage:
        data = await self._query(
            LIST_DOCUMENTS_QUERY,
            {"type": doc_type, "first": page_size, "after": cursor},
            f"listar {doc_type}",
        )
        documents = [_parse_document(n, doc_type) for n in nodes(data, "metaobjects")]
        info = dig(data, "metaobjects", "pageInfo") or {}
        return DocumentPage(
            documents=documents,
            page_info=PageInfo(
                has_next_page=bool(info.get("hasNextPage")),
                end_cursor=info.get("endCursor"),
            ),
        )

    async def list_all(self, doc_type: str, page_size: int = 100) -> List[Document]:
        """Recorre todas las páginas (para exportes)."""
        documents = []
        cursor: Optional[str] = None
        while True:
            page = await self.list(doc_type, page_size=page_size, cursor=cursor)
            documents.extend(page.documents)
            if not page.page_info.has_next_page or not page.page_info.end_cursor:
                break
            cursor = page.page_info.end_cursor
        return documents

    async def count(self, doc_type: str) -> int:
        data = await self._query(COUNT_DOCUMENTS_QUERY, {"type": doc_type}, f"contar {doc_type}")
        value = dig(data, "metaobjectDefinitionByType", "metaobjectsCount")
        try:
            return int(value or 0)
        except (TypeError, ValueError):
            return 0
