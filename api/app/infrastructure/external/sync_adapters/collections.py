"""
Adaptador de colecciones (agrupaciones manuales y automaticas).

- Lookup: shopify_id explicito -> collectionByHandle -> crear.
- Si la creación falla por la imagen, se reintenta sin imagen (advertencia).
- Colecciones manuales: asigna productos con collectionAddProducts.
- Espejo en `col-{handle}`.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

from loguru import logger

from app.domain.entities.records import SyncOutcome
from app.infrastructure.external.document_store.definitions import COLLECTION_DEFINITION
from app.infrastructure.external.document_store.handles import build_handle, slugify
from app.infrastructure.external.remote_api.ids import dig, gid_tail, to_gid
from app.infrastructure.external.sync_adapters.base import EntitySyncAdapter, parse_metafields
from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.base import AppException
from app.shared.exceptions.domain import ValidationException
from app.shared.exceptions.remote import RemoteValidationError
from app.shared.utils.datetime_utils import DateTimeUtils
from app.shared.utils.value_parsing import clean, pick, split_list


COLLECTION_BY_HANDLE_QUERY = """
query CollectionByHandle($handle: String!) {
  collectionByHandle(handle: $handle) { id title handle }
}
"""

COLLECTION_CREATE_MUTATION = """
mutation CollectionCreate($input: CollectionInput!) {
  collectionCreate(input: $input) {
    collection { id handle }
    userErrors { field message }
  }
}
"""

COLLECTION_UPDATE_MUTATION = """
mutation CollectionUpdate($input: CollectionInput!) {
  collectionUpdate(input: $input) {
    collection { id handle }
    userErrors { field message }
  }
}
"""

COLLECTION_ADD_PRODUCTS_MUTATION = """
mutation CollectionAddProducts($id: ID!, $productIds: [ID!]!) {
  collectionAddProducts(id: $id, productIds: $productIds) {
    userErrors { field message }
  }
}
"""

RELATION_ALIASES = {
    "equals": "equals", "is_equal_to": "equals", "is equal to": "equals",
    "not_equals": "not_equals", "is_not_equal_to": "not_equals", "is not equal to": "not_equals",
    "greater_than": "greater_than", "is_greater_than": "greater_than", "is greater than": "greater_than",
    "less_than": "less_than", "is_less_than": "less_than", "is less than": "less_than",
    "starts_with": "starts_with", "ends_with": "ends_with",
    "contains": "contains", "not_contains": "not_contains",
    "does_not_contain": "not_contains", "does not contain": "not_contains",
    "is_empty": "is_empty", "is empty": "is_empty",
    "is_not_empty": "is_not_empty", "is not empty": "is_not_empty",
}

FIELD_ALIASES = {
    "tag": "tag", "tags": "tag",
    "title": "title", "product_title": "title",
    "type": "product_type", "product_type": "product_type",
    "category": "category",
    "vendor": "vendor",
    "price": "variant_price", "variant_price": "variant_price",
    "compare_at_price": "variant_compare_at_price", "variant_compare_at_price": "variant_compare_at_price",
    "weight": "variant_weight", "variant_weight": "variant_weight",
    "inventory": "variant_inventory", "inventory_stock": "variant_inventory",
    "variant_inventory": "variant_inventory",
    "variant_title": "variant_title",
}

COLUMN_BY_FIELD = {
    "title": "TITLE",
    "product_type": "TYPE",
    "category": "PRODUCT_CATEGORY_ID",
    "vendor": "VENDOR",
    "tag": "TAG",
    "variant_price": "VARIANT_PRICE",
    "variant_compare_at_price": "VARIANT_COMPARE_AT_PRICE",
    "variant_weight": "VARIANT_WEIGHT",
    "variant_inventory": "VARIANT_INVENTORY",
    "variant_title": "VARIANT_TITLE",
}

RELATION_BY_NAME = {
    "equals": "EQUALS",
    "not_equals": "NOT_EQUALS",
    "greater_than": "GREATER_THAN",
    "less_than": "LESS_THAN",
    "starts_with": "STARTS_WITH",
    "ends_with": "ENDS_WITH",
    "contains": "CONTAINS",
    "not_contains": "NOT_CONTAINS",
    "is_empty": "IS_NOT_SET",
    "is_not_empty": "IS_SET",
}

DEFAULT_RULE_SET = {
    "relation": "ALL",
    "conditions": [{"field": "tag", "relation": "equals", "condition": "imported"}],
}


def normalize_relation(value: Optional[str]) -> str:
    return RELATION_ALIASES.get((value or "").strip().lower(), "equals")


def normalize_field(value: Optional[str]) -> str:
    text = (value or "").strip().lower()
    return FIELD_ALIASES.get(text, text or "tag")


def build_rule_set(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Rule set en formato interno.
    Prioridad: field/relation_type/condition, formatos antiguos de tags,
    rule_set JSON y por último la regla `tag equals imported`.
    """
    field_name = pick(record, "field", "rule_field")
    relation_type = pick(record, "relation_type")
    tags = pick(record, "tags")

    if field_name and relation_type:
        relation = normalize_relation(relation_type)
        condition = pick(record, "condition") or ""
        if not condition and relation not in ("is_empty", "is_not_empty"):
            raise ValidationException(
                f"Condition is required for {normalize_field(field_name)} {relation}", field="condition"
            )
        applied = "ANY" if (pick(record, "relation") or "").upper() == "ANY" else "ALL"
        return {
            "relation": applied,
            "conditions": [{"field": normalize_field(field_name), "relation": relation, "condition": condition}],
        }
    if relation_type and tags:
        return {
            "relation": "ALL",
            "conditions": [{"field": "tag", "relation": normalize_relation(relation_type), "condition": tags}],
        }
    if tags:
        return {"relation": "ALL", "conditions": [{"field": "tag", "relation": "equals", "condition": tags}]}

    raw_rule_set = pick(record, "rule_set")
    if raw_rule_set:
        try:
            parsed = json.loads(raw_rule_set)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict) and isinstance(parsed.get("conditions"), list) and parsed["conditions"]:
            return parsed
    return json.loads(json.dumps(DEFAULT_RULE_SET))


def remote_rule_set(rule_set: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "appliedDisjunctively": rule_set.get("relation") == "ANY",
        "rules": [
            {
                "column": COLUMN_BY_FIELD.get(normalize_field(c.get("field")), "TAG"),
                "relation": RELATION_BY_NAME.get(normalize_relation(c.get("relation")), "EQUALS"),
                "condition": str(c.get("condition", "")),
            }
            for c in rule_set.get("conditions", [])
        ],
    }


def parse_product_ids(value: Any) -> List[str]:
    """'123, "456"' -> ['123', '456']; descarta valores no numéricos."""
    return [p for p in split_list(value, separators=",") if p.isdigit() or p.startswith("gid://")]


def is_valid_image_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class CollectionSyncAdapter(EntitySyncAdapter):
    """Una unidad por colección."""

    entity_type = EntityType.COLLECTIONS.value
    definition = COLLECTION_DEFINITION

    def describe(self, record: Mapping[str, Any]) -> str:
        return pick(record, "title") or "Unknown"

    def friendly_error(self, exc: BaseException) -> str:
        """Traduce errores frecuentes a mensajes accionables."""
        message = exc.message if isinstance(exc, AppException) else str(exc)
        lowered = message.lower()
        if "field definition" in lowered and "does not exist" in lowered:
            return (
                "El formato de metafields es invalido. Use 'namespace.key:valor' "
                "(p.ej. 'custom.color:rojo') o elimine la columna metafields."
            )
        if "title is required" in lowered:
            return "El titulo de la coleccion es obligatorio en cada fila."
        if "condition is required" in lowered:
            return "La coleccion automatica requiere un valor de condicion para la regla."
        if "handle" in lowered and ("taken" in lowered or "already" in lowered):
            return f"Ya existe otra coleccion con ese handle: {message}"
        if "image" in lowered:
            return f"La imagen de la coleccion no es valida: {message}"
        if "rate limit" in lowered or "throttled" in lowered:
            return "Se alcanzo el limite de tasa de la API remota. Intente de nuevo en unos momentos."
        if "access denied" in lowered or "permission" in lowered or "authentication" in lowered:
            return "Error de permisos. Verifique que la app tenga los accesos necesarios."
        return f"No se pudo importar la coleccion: {message}"

    async def sync(self, record: Dict[str, Any]) -> SyncOutcome:
        title = pick(record, "title")
        if not title:
            raise ValidationException("Title is required", field="title")

        is_smart = (pick(record, "collection_type") or "").lower() == "smart"
        rule_set = build_rule_set(record) if is_smart else None
        product_ids = [] if is_smart else parse_product_ids(record.get("product_ids"))
        handle = pick(record, "handle", "collection_handle") or slugify(title)
        image_url = pick(record, "image_url", "image")
        if image_url and not is_valid_image_url(image_url):
            image_url = None
        metafields_raw = pick(record, "metafields", "stored_metafields")
        warnings: List[str] = []

        collection_input: Dict[str, Any] = {
            "title": title,
            "descriptionHtml": pick(record, "description", "body_html") or "",
            "handle": handle,
        }
        seo_title = pick(record, "seo_title")
        meta_description = pick(record, "meta_description")
        if seo_title or meta_description:
            collection_input["seo"] = {k: v for k, v in (("title", seo_title), ("description", meta_description)) if v}
        metafields = parse_metafields(metafields_raw)
        if metafields:
            collection_input["metafields"] = metafields
        if image_url:
            collection_input["image"] = {"src": image_url, "altText": title}
        if rule_set:
            collection_input["ruleSet"] = remote_rule_set(rule_set)

        remote_id = await self.find_existing(pick(record, "shopify_id", "collection_id"), handle)
        created = remote_id is None
        if remote_id:
            await self._mutate(
                COLLECTION_UPDATE_MUTATION,
                {"input": {**collection_input, "id": remote_id}},
                "collectionUpdate",
                f"actualizar coleccion {handle}",
            )
        else:
            remote_id = await self.create_collection(collection_input, warnings)

        if product_ids:
            warning = await self.add_products(remote_id, product_ids)
            if warning:
                warnings.append(warning)

        now = DateTimeUtils.now_utc()
        await self._store.upsert(
            COLLECTION_DEFINITION.type,
            build_handle("col", handle),
            {
                "shopify_id": gid_tail(remote_id) or remote_id,
                "title": title,
                "description": pick(record, "description", "body_html"),
                "collection_type": "smart" if is_smart else "manual",
                "collection_handle": handle,
                "seo_title": seo_title,
                "meta_description": meta_description,
                "image_url": image_url,
                "product_ids": product_ids or None,
                "rule_set": rule_set,
                "stored_metafields": metafields_raw,
                "updated_at": now,
            },
            create_fields={"created_at": now},
        )

        kind = "automatica" if is_smart else "manual"
        detail = f"{'Creada' if created else 'Actualizada'} coleccion {kind}"
        if rule_set:
            rule = rule_set["conditions"][0]
            detail += f" ({rule['field']} {rule['relation']} \"{rule['condition']}\")"
        elif product_ids:
            detail += f" ({len(product_ids)} productos)"
        return SyncOutcome(primary_key=remote_id, created=created, warnings=warnings, detail=detail)

    async def find_existing(self, explicit_id: Optional[str], handle: str) -> Optional[str]:
        if explicit_id and clean(explicit_id):
            return to_gid("Collection", explicit_id)
        data = await self._call(COLLECTION_BY_HANDLE_QUERY, {"handle": handle}, f"buscar coleccion {handle}")
        return dig(data, "collectionByHandle", "id")

    async def create_collection(self, collection_input: Dict[str, Any], warnings: List[str]) -> str:
        """Crea la colección; si la imagen es rechazada, reintenta sin ella."""
        description = f"crear coleccion {collection_input['handle']}"
        try:
            payload = await self._mutate(
                COLLECTION_CREATE_MUTATION, {"input": collection_input}, "collectionCreate", description
            )
        except RemoteValidationError as e:
            if "image" not in e.message.lower() or "image" not in collection_input:
                raise
            logger.warning(f"[collections] Imagen rechazada para {collection_input['handle']}: {e.message}")
            retry_input = {k: v for k, v in collection_input.items() if k != "image"}
            payload = await self._mutate(
                COLLECTION_CREATE_MUTATION, {"input": retry_input}, "collectionCreate", description
            )
            warnings.append(f"imagen omitida ({e.message})")

        remote_id = dig(payload, "collection", "id")
        if not remote_id:
            raise RemoteValidationError("collectionCreate no devolvio la coleccion")
        return remote_id

    async def add_products(self, collection_id: str, product_ids: List[str]) -> Optional[str]:
        gids = list(dict.fromkeys(to_gid("Product", p) for p in product_ids))
        try:
            await self._mutate(
                COLLECTION_ADD_PRODUCTS_MUTATION,
                {"id": collection_id, "productIds": gids},
                "collectionAddProducts",
                "asignar productos",
            )
        except AppException as e:
            return f"productos no asignados: {e.message}"
        return None
