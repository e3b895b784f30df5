"""
Adaptador genérico para documentos tipados de un tipo ya definido en la
API remota (importación de tablas arbitrarias).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from app.domain.entities.document import DocumentDefinition
from app.domain.entities.records import SyncOutcome
from app.infrastructure.external.document_store.handles import build_handle
from app.infrastructure.external.remote_api.ids import dig
from app.infrastructure.external.sync_adapters.base import EntitySyncAdapter
from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.domain import ValidationException
from app.shared.exceptions.remote import (
    PreconditionFailedError,
    RemoteTransientError,
    RemoteValidationError,
)
from app.shared.utils.value_parsing import (
    clean,
    normalize_key,
    parse_bool,
    parse_float,
    parse_int,
    pick,
    split_list,
)


# sufijo del tipo de referencia -> (query, raíz de la respuesta)
REFERENCE_QUERIES = {
    "product_reference": (
        "query ProductByHandle($handle: String!) { productByHandle(handle: $handle) { id } }",
        "productByHandle",
    ),
    "collection_reference": (
        "query CollectionByHandle($handle: String!) { collectionByHandle(handle: $handle) { id } }",
        "collectionByHandle",
    ),
    "page_reference": (
        "query PageByHandle($handle: String!) { pageByHandle(handle: $handle) { id } }",
        "pageByHandle",
    ),
    "blog_reference": (
        "query BlogByHandle($handle: String!) { blogByHandle(handle: $handle) { id } }",
        "blogByHandle",
    ),
}

FILE_CREATE_MUTATION = """
mutation FileCreate($files: [FileCreateInput!]!) {
  fileCreate(files: $files) {
    files { id fileStatus }
    userErrors { field message }
  }
}
"""


def rich_text(value: str) -> Dict[str, Any]:
    return {
        "type": "root",
        "children": [{"type": "paragraph", "children": [{"type": "text", "value": value}]}],
    }


def _json_or(value: str, fallback: Any) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return fallback


class DocumentSyncAdapter(EntitySyncAdapter):
    """Documentos de un tipo existente; la definición se lee en prepare()."""

    entity_type = EntityType.DOCUMENTS.value

    def __init__(self, *args: Any, document_type: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        if not document_type:
            raise ValidationException("document_type es obligatorio para importar documentos", field="document_type")
        self.document_type = document_type
        self.target: Optional[DocumentDefinition] = None
        self._reference_cache: Dict[Tuple[str, str], Optional[str]] = {}

    async def prepare(self) -> None:
        """
        Raises:
            PreconditionFailedError: Si el tipo no está definido en la API remota
        """
        await self.verify_access()
        self.target = await self._store.get_definition(self.document_type)
        if self.target is None:
            raise PreconditionFailedError(f"Metaobject definition not found: {self.document_type}")

    def describe(self, record: Mapping[str, Any]) -> str:
        return pick(record, "handle", "title", "name") or "Documento"

    async def sync(self, record: Dict[str, Any]) -> SyncOutcome:
        if self.target is None:
            raise PreconditionFailedError("prepare() no fue ejecutado")

        fields: Dict[str, Any] = {}
        warnings: List[str] = []
        for definition in self.target.field_definitions:
            raw = record.get(normalize_key(definition.key))
            if clean(raw) is None and not isinstance(raw, (list, dict)):
                continue
            value, warning = await self.parse_value(raw, definition.type)
            if warning:
                warnings.append(f"{definition.key}: {warning}")
            if value is not None:
                fields[definition.key] = value

        if not fields:
            raise ValidationException("No valid fields found to import")

        status = "DRAFT" if (pick(record, "status") or "").upper() == "DRAFT" else "ACTIVE"
        handle = pick(record, "handle") or self.derive_handle(record, fields)
        if handle:
            document, created = await self._store.upsert(self.document_type, handle, fields, status=status)
        else:
            document = await self._store.create(self.document_type, fields, status=status)
            created = True

        return SyncOutcome(
            primary_key=document.id,
            created=created,
            warnings=warnings,
            detail="Imported successfully",
        )

    def derive_handle(self, record: Mapping[str, Any], fields: Mapping[str, Any]) -> Optional[str]:
        """
        Handle determinístico para registros sin columna `handle`:
        title/name del registro o, si faltan, el primer campo de texto.
        """
        source = pick(record, "title", "name")
        if source is None:
            source = next((v for v in fields.values() if isinstance(v, str) and v.strip()), None)
        if source is None:
            return None
        return build_handle(self.document_type, source) or None

    # ------------------------------------------------------------------
    # Parseo por tipo declarado
    # ------------------------------------------------------------------

    async def parse_value(self, raw: Any, field_type: str) -> Tuple[Any, Optional[str]]:
        """
        Convierte el valor de entrada al tipo del campo.

        Returns:
            Tuple[Any, Optional[str]]: (valor o None para omitir, advertencia)
        """
        if field_type.startswith("list."):
            item_type = field_type[len("list."):]
            values, warnings = [], []
            for item in split_list(raw):
                value, warning = await self.parse_single(item, item_type)
                if warning:
                    warnings.append(warning)
                if value is not None:
                    values.append(value)
            return (values or None), ("; ".join(warnings) or None)
        return await self.parse_single(raw, field_type)

    async def parse_single(self, raw: Any, field_type: str) -> Tuple[Any, Optional[str]]:
        if isinstance(raw, (list, dict)):
            return raw, None
        text = clean(raw)
        if text is None:
            return None, None

        if field_type == "file_reference":
            if text.startswith("gid://"):
                return text, None
            if text.startswith(("http://", "https://")):
                file_id = await self.upload_file(text)
                if file_id is None:
                    return None, f"no se pudo subir '{text}'; valor omitido"
                return file_id, None
            return None, f"'{text}' no es un gid ni una URL de archivo; valor omitido"
        if field_type.endswith("_reference"):
            resolved = await self.resolve_reference(field_type, text)
            if resolved is None:
                return None, f"referencia '{text}' no encontrada"
            return resolved, None
        if field_type == "link":
            return _json_or(text, {"url": text, "text": text}), None
        if field_type == "rich_text_field":
            return _json_or(text, rich_text(text)), None
        if field_type == "json":
            return _json_or(text, text), None
        if field_type == "boolean":
            return parse_bool(text), None
        if field_type == "number_integer":
            return parse_int(text), None
        if field_type == "number_decimal":
            return parse_float(text), None
        return text, None

    async def upload_file(self, url: str) -> Optional[str]:
        """Sube un archivo por URL con fileCreate; una vez por URL y job."""
        key = ("file_reference", url)
        if key not in self._reference_cache:
            try:
                payload = await self._mutate(
                    FILE_CREATE_MUTATION,
                    {"files": [{"originalSource": url}]},
                    "fileCreate",
                    f"subir archivo {url}",
                )
            except (RemoteValidationError, RemoteTransientError) as e:
                logger.warning(f"[documents] Archivo no subido '{url}': {e.message}")
                payload = {}
            files = payload.get("files") or []
            self._reference_cache[key] = files[0].get("id") if files and isinstance(files[0], dict) else None
        return self._reference_cache[key]

    async def resolve_reference(self, field_type: str, value: str) -> Optional[str]:
        """Resuelve un handle a gid; los gid se devuelven tal cual."""
        if value.startswith("gid://"):
            return value
        lookup = REFERENCE_QUERIES.get(field_type)
        if lookup is None:
            return None
        key = (field_type, value)
        if key not in self._reference_cache:
            query, root = lookup
            data = await self._call(query, {"handle": value}, f"resolver {field_type} {value}")
            self._reference_cache[key] = dig(data, root, "id")
            if self._reference_cache[key] is None:
                logger.warning(f"[documents] Referencia no resuelta: {field_type} '{value}'")
        return self._reference_cache[key]
