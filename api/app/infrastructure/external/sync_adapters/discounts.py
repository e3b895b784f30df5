"""
Adaptador de descuentos con código.

Tipos soportados: percentage, fixed_amount, free_shipping y buy_x_get_y.
Los porcentajes viajan como fracción (15 -> 0.15) y los montos con dos
decimales. Los códigos en conflicto se regeneran con sufijos.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from app.domain.entities.records import SyncOutcome
from app.infrastructure.external.document_store.definitions import DISCOUNT_DEFINITION
from app.infrastructure.external.document_store.handles import build_handle
from app.infrastructure.external.remote_api.ids import dig, to_gid
from app.infrastructure.external.sync_adapters.base import (
    EntitySyncAdapter,
    regenerate_unique_value,
)
from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.base import AppException
from app.shared.exceptions.domain import ValidationException
from app.shared.exceptions.remote import RemoteConflictError, RemoteValidationError
from app.shared.utils.datetime_utils import DateTimeUtils
from app.shared.utils.value_parsing import (
    parse_bool,
    parse_datetime,
    parse_float,
    parse_int,
    pick,
    split_list,
    unique,
)


DISCOUNT_BY_CODE_QUERY = """
query DiscountByCode($code: String!) {
  codeDiscountNodeByCode(code: $code) {
    id
    codeDiscount {
      ... on DiscountCodeBasic { title status }
      ... on DiscountCodeBxgy { title status }
      ... on DiscountCodeFreeShipping { title status }
    }
  }
}
"""

_DISCOUNT_NODE_FIELDS = """
    codeDiscountNode {
      id
      codeDiscount {
        ... on DiscountCodeBasic { title status codes(first: 1) { nodes { code } } }
        ... on DiscountCodeBxgy { title status codes(first: 1) { nodes { code } } }
        ... on DiscountCodeFreeShipping { title status codes(first: 1) { nodes { code } } }
      }
    }
    userErrors { field message code }
"""

BASIC_CREATE_MUTATION = """
mutation DiscountCodeBasicCreate($basicCodeDiscount: DiscountCodeBasicInput!) {
  discountCodeBasicCreate(basicCodeDiscount: $basicCodeDiscount) {%s}
}
""" % _DISCOUNT_NODE_FIELDS

FREE_SHIPPING_CREATE_MUTATION = """
mutation DiscountCodeFreeShippingCreate($freeShippingCodeDiscount: DiscountCodeFreeShippingInput!) {
  discountCodeFreeShippingCreate(freeShippingCodeDiscount: $freeShippingCodeDiscount) {%s}
}
""" % _DISCOUNT_NODE_FIELDS

BXGY_CREATE_MUTATION = """
mutation DiscountCodeBxgyCreate($bxgyCodeDiscount: DiscountCodeBxgyInput!) {
  discountCodeBxgyCreate(bxgyCodeDiscount: $bxgyCodeDiscount) {%s}
}
""" % _DISCOUNT_NODE_FIELDS

# tipo -> (mutation, variable, raíz de la respuesta, prefijo de código)
CREATE_OPERATIONS = {
    "percentage": (BASIC_CREATE_MUTATION, "basicCodeDiscount", "discountCodeBasicCreate", "DSC"),
    "fixed_amount": (BASIC_CREATE_MUTATION, "basicCodeDiscount", "discountCodeBasicCreate", "DSC"),
    "free_shipping": (
        FREE_SHIPPING_CREATE_MUTATION,
        "freeShippingCodeDiscount",
        "discountCodeFreeShippingCreate",
        "SHIP",
    ),
    "buy_x_get_y": (BXGY_CREATE_MUTATION, "bxgyCodeDiscount", "discountCodeBxgyCreate", "BXGY"),
}

_TYPE_ALIASES = {
    "percentage": "percentage",
    "percent": "percentage",
    "fixed_amount": "fixed_amount",
    "fixed": "fixed_amount",
    "amount": "fixed_amount",
    "shipping": "free_shipping",
    "free_shipping": "free_shipping",
    "buy_x_get_y": "buy_x_get_y",
    "bxgy": "buy_x_get_y",
}
_CODE_CHARS = re.compile(r"[^A-Z0-9]+")


@dataclass
class DiscountRow:
    """Registro de descuento normalizado y validado."""

    title: str
    discount_type: str
    code: str
    value: Optional[float] = None
    description: Optional[str] = None
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    get_discount: Optional[float] = None
    applies_to: str = "all"
    customer_eligibility: str = "all"
    minimum_requirement_type: str = "none"
    minimum_requirement_value: Optional[float] = None
    usage_limit: Optional[int] = None
    one_per_customer: bool = False
    combines_with_product_discounts: bool = False
    combines_with_order_discounts: bool = False
    combines_with_shipping_discounts: bool = False
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    product_ids: List[str] = field(default_factory=list)
    collection_ids: List[str] = field(default_factory=list)
    metafields: Optional[str] = None


def base_code(discount_type: str, title: str) -> str:
    """'Summer Sale' (percentage) -> 'DSC_SUMMER_SALE'."""
    prefix = CREATE_OPERATIONS[discount_type][3]
    return f"{prefix}_{_CODE_CHARS.sub('_', title.upper()).strip('_')}"


def parse_discount_row(record: Mapping[str, Any], settings) -> DiscountRow:
    """
    Normaliza y valida un registro de descuento.

    Raises:
        ValidationException: Si faltan campos obligatorios para el tipo
    """
    title = pick(record, "title", "discount_title")
    if not title:
        raise ValidationException("Discount title is required", field="title")

    raw_type = (pick(record, "discount_type", "type") or "percentage").lower().replace(" ", "_")
    discount_type = _TYPE_ALIASES.get(raw_type)
    if discount_type is None:
        raise ValidationException(f"Unsupported discount type '{raw_type}'", field="discount_type")

    value = parse_float(record.get("value"))
    if discount_type == "percentage" and not value:
        raise ValidationException("Percentage discounts require a 'value' field", field="value")
    if discount_type == "fixed_amount" and not value:
        raise ValidationException("Fixed amount discounts require a 'value' field", field="value")
    if discount_type == "free_shipping":
        value = 0.0

    row = DiscountRow(
        title=title,
        discount_type=discount_type,
        code="",
        value=value,
        description=pick(record, "description"),
        buy_quantity=parse_int(pick(record, "buy_quantity", "buy_qty")),
        get_quantity=parse_int(pick(record, "get_quantity", "get_qty")),
        get_discount=parse_float(record.get("get_discount")),
        applies_to=(pick(record, "applies_to") or "all").lower(),
        customer_eligibility=(pick(record, "customer_eligibility") or "all").lower(),
        minimum_requirement_type=(pick(record, "minimum_requirement_type") or "none").lower(),
        minimum_requirement_value=parse_float(record.get("minimum_requirement_value")),
        usage_limit=parse_int(record.get("usage_limit")),
        one_per_customer=bool(parse_bool(record.get("one_per_customer"), default=False)),
        combines_with_product_discounts=bool(parse_bool(record.get("combines_with_product_discounts"), default=False)),
        combines_with_order_discounts=bool(parse_bool(record.get("combines_with_order_discounts"), default=False)),
        combines_with_shipping_discounts=bool(parse_bool(record.get("combines_with_shipping_discounts"), default=False)),
        starts_at=parse_datetime(record.get("starts_at")),
        ends_at=parse_datetime(record.get("ends_at")),
        product_ids=unique(split_list(record.get("product_ids"), separators=",")),
        collection_ids=unique(split_list(record.get("collection_ids"), separators=",")),
        metafields=pick(record, "metafields", "stored_metafields"),
    )

    if discount_type == "buy_x_get_y":
        if not row.buy_quantity or not row.get_quantity:
            raise ValidationException(
                "Buy X Get Y discounts require 'buy_quantity' and 'get_quantity' fields", field="buy_quantity"
            )
        if not row.product_ids and not row.collection_ids:
            raise ValidationException(
                "Buy X Get Y discounts require specific products or collections. Cannot set to 'all' items.",
                field="applies_to",
            )
        if not row.get_discount:
            row.get_discount = float(settings.DEFAULT_BXGY_DISCOUNT)

    row.code = pick(record, "code", "discount_code") or base_code(discount_type, title)
    return row


def minimum_requirement(row: DiscountRow) -> Optional[Dict[str, Any]]:
    if row.minimum_requirement_type == "subtotal" and row.minimum_requirement_value:
        return {"subtotal": {"greaterThanOrEqualToSubtotal": f"{row.minimum_requirement_value:.2f}"}}
    if row.minimum_requirement_type == "quantity" and row.minimum_requirement_value:
        return {"quantity": {"greaterThanOrEqualToQuantity": str(int(row.minimum_requirement_value))}}
    return None


def target_items(row: DiscountRow) -> Dict[str, Any]:
    """Productos o colecciones objetivo en formato gid."""
    if row.product_ids:
        return {"products": {"productsToAdd": [to_gid("Product", p) for p in row.product_ids]}}
    if row.collection_ids:
        return {"collections": {"collectionsToAdd": [to_gid("Collection", c) for c in row.collection_ids]}}
    return {}


def customer_gets(row: DiscountRow, settings) -> Dict[str, Any]:
    if row.discount_type == "percentage":
        value = {"percentage": (row.value or settings.DEFAULT_PERCENTAGE_DISCOUNT) / 100}
    else:
        value = {"discountAmount": {"amount": f"{row.value or 0:.2f}", "appliesOnEachItem": False}}

    if row.applies_to == "all" and not (row.product_ids or row.collection_ids):
        return {"value": value, "items": {"all": True}}
    items = target_items(row)
    if not items:
        raise ValidationException(
            f"applies_to '{row.applies_to}' requires product_ids or collection_ids", field="applies_to"
        )
    return {"value": value, "items": items}


def discount_input(row: DiscountRow, code: str, settings) -> Dict[str, Any]:
    """Input de creación según el tipo de descuento."""
    payload: Dict[str, Any] = {
        "title": row.title,
        "code": code,
        "startsAt": DateTimeUtils.to_iso_string(row.starts_at or DateTimeUtils.now_utc()),
        "customerSelection": {"all": True},
        "appliesOncePerCustomer": row.one_per_customer,
        "combinesWith": {
            "productDiscounts": row.combines_with_product_discounts,
            "orderDiscounts": row.combines_with_order_discounts,
            "shippingDiscounts": row.combines_with_shipping_discounts,
        },
    }
    if row.ends_at:
        payload["endsAt"] = DateTimeUtils.to_iso_string(row.ends_at)
    if row.usage_limit:
        payload["usageLimit"] = row.usage_limit
    requirement = minimum_requirement(row)
    if requirement:
        payload["minimumRequirement"] = requirement

    if row.discount_type == "free_shipping":
        payload["destination"] = {"all": True}
    elif row.discount_type == "buy_x_get_y":
        items = target_items(row)
        effect = (row.get_discount or settings.DEFAULT_BXGY_DISCOUNT) / 100
        payload["customerBuys"] = {"value": {"quantity": str(row.buy_quantity)}, "items": items}
        payload["customerGets"] = {
            "value": {
                "discountOnQuantity": {"quantity": str(row.get_quantity), "effect": {"percentage": effect}}
            },
            "items": items,
        }
    else:
        payload["customerGets"] = customer_gets(row, settings)
    return payload


def mirror_handle(row: DiscountRow) -> str:
    """Handle del espejo: código base + título (el código final puede variar)."""
    return build_handle("discount", row.code, row.title)


class DiscountSyncAdapter(EntitySyncAdapter):
    """
    Un descuento por registro; espejo en `discount-{código base}-{título}`.

    Orden de búsqueda antes de crear:
    1. descuento remoto con el código base y el mismo título;
    2. código final guardado en el espejo de una sincronización anterior,
       verificado contra la API remota;
    3. creación, regenerando el código ante conflicto.
    """

    entity_type = EntityType.DISCOUNTS.value
    definition = DISCOUNT_DEFINITION

    def describe(self, record: Mapping[str, Any]) -> str:
        return pick(record, "title", "discount_title") or "Untitled discount"

    def friendly_error(self, exc: BaseException) -> str:
        message = exc.message if isinstance(exc, AppException) else str(exc)
        if isinstance(exc, RemoteConflictError):
            return f"No se pudo generar un codigo unico: {message}"
        return message

    async def sync(self, record: Dict[str, Any]) -> SyncOutcome:
        row = parse_discount_row(record, self._settings)
        warnings: List[str] = []

        linked = await self.find_linked(row)
        if linked:
            remote_id, code = linked
            created = False
            logger.info(f"[discounts] Reutilizando descuento {code} ({remote_id})")
        else:
            remote_id, code, created = await self.create_discount(row)
            if created:
                warning = await self._set_metafields(remote_id, row.metafields)
                if warning:
                    warnings.append(warning)

        await self._store.upsert(
            DISCOUNT_DEFINITION.type,
            mirror_handle(row),
            self.mirror_fields(row, code, remote_id),
            create_fields={"created_at": DateTimeUtils.now_utc()},
        )

        detail = "Descuento creado" if created else "Descuento existente reutilizado"
        if code != row.code:
            detail += f" con codigo {code}"
        return SyncOutcome(primary_key=remote_id, created=created, warnings=warnings, detail=detail)

    async def find_linked(self, row: DiscountRow) -> Optional[Tuple[str, str]]:
        """
        Descuento remoto ya vinculado a este registro.

        Returns:
            Optional[Tuple[str, str]]: (gid, código) o None si hay que crearlo
        """
        existing_id = await self.find_existing(row.code, row.title)
        if existing_id:
            return existing_id, row.code

        mirror = await self._store.get_by_handle(DISCOUNT_DEFINITION.type, mirror_handle(row))
        mirrored_code = mirror.get("code") if mirror else None
        if not mirrored_code or mirrored_code == row.code:
            return None
        existing_id = await self.find_existing(str(mirrored_code), row.title)
        if existing_id:
            return existing_id, str(mirrored_code)
        logger.warning(
            f"[discounts] El espejo apunta a {mirrored_code} pero ya no existe en la API remota; se recrea"
        )
        return None

    async def find_existing(self, code: str, title: str) -> Optional[str]:
        """ID del descuento con el mismo código y título, si existe."""
        data = await self._call(DISCOUNT_BY_CODE_QUERY, {"code": code}, f"buscar descuento {code}")
        node = dig(data, "codeDiscountNodeByCode")
        if not isinstance(node, dict) or not node.get("id"):
            return None
        if dig(node, "codeDiscount", "title") == title:
            return node["id"]
        return None

    async def create_discount(self, row: DiscountRow) -> Tuple[str, str, bool]:
        """
        Crea el descuento; ante conflicto de unicidad re-vincula si el
        código en uso es de un descuento con el mismo título y si no
        regenera el código sin repetir uno ya intentado.

        Returns:
            Tuple[str, str, bool]: (gid del descuento, código final, True si se creó)
        """
        operation, variable, root, _ = CREATE_OPERATIONS[row.discount_type]
        max_attempts = max(1, self._settings.DISCOUNT_CODE_MAX_ATTEMPTS)
        code = row.code
        tried = {code}
        attempt = 0
        while True:
            try:
                payload = await self._mutate(
                    operation,
                    {variable: discount_input(row, code, self._settings)},
                    root,
                    f"crear descuento {code}",
                    conflict_field="code",
                )
                break
            except RemoteConflictError as conflict:
                if code != row.code:
                    relinked = await self.find_existing(code, row.title)
                    if relinked:
                        logger.info(f"[discounts] Codigo {code} ya pertenece a '{row.title}'; re-vinculado")
                        return relinked, code, False
                attempt += 1
                if attempt > max_attempts:
                    raise RemoteConflictError(
                        f"El codigo {row.code} sigue en uso tras {max_attempts} intentos",
                        user_errors=conflict.user_errors,
                    ) from conflict
                code = regenerate_unique_value(row.code, attempt, self._settings, exclude=tried)
                tried.add(code)
                logger.warning(f"[discounts] Codigo en uso, reintentando con {code}")

        remote_id = dig(payload, "codeDiscountNode", "id")
        if not remote_id:
            raise RemoteValidationError(f"{root} no devolvio el descuento {row.title}")
        codes = dig(payload, "codeDiscountNode", "codeDiscount", "codes", "nodes") or []
        final_code = codes[0].get("code") if codes and isinstance(codes[0], dict) else None
        return remote_id, final_code or code, True

    def mirror_fields(self, row: DiscountRow, code: str, remote_id: str) -> Dict[str, Any]:
        return {
            "shopify_id": remote_id,
            "title": row.title,
            "description": row.description,
            "discount_type": row.discount_type,
            "value": row.value,
            "code": code,
            "buy_quantity": row.buy_quantity,
            "get_quantity": row.get_quantity,
            "get_discount": row.get_discount,
            "applies_to": row.applies_to,
            "customer_eligibility": row.customer_eligibility,
            "minimum_requirement_type": row.minimum_requirement_type,
            "minimum_requirement_value": row.minimum_requirement_value,
            "usage_limit": row.usage_limit,
            "one_per_customer": row.one_per_customer,
            "combines_with_product_discounts": row.combines_with_product_discounts,
            "combines_with_order_discounts": row.combines_with_order_discounts,
            "combines_with_shipping_discounts": row.combines_with_shipping_discounts,
            "starts_at": row.starts_at,
            "ends_at": row.ends_at,
            "product_ids": row.product_ids or None,
            "collection_ids": row.collection_ids or None,
            "status": "active",
            "updated_at": DateTimeUtils.now_utc(),
        }
