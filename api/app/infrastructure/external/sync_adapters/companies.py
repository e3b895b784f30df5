"""
Adaptador de empresas (organizaciones) y sus ubicaciones.

Varias filas con el mismo company_id son una empresa con varias
ubicaciones. Flujo por grupo (en serie dentro del grupo):

1. Resolver la empresa: espejo existente -> búsqueda remota por
   external id -> por nombre exacto -> creación con la primera ubicación.
2. Conflicto de email del contacto al crear:
   a) buscar la empresa duena del email y re-vincular SOLO si coincide
      por external id o por nombre (sin distinguir mayúsculas);
   b) si el email fue autogenerado, regenerarlo y reintentar;
   c) si no, error terminal del registro.
3. Ubicaciones dependientes: desde el índice 1 si la empresa es nueva
   (la 0 se adjunto al crearla), desde el 0 si se reutilizo.
4. Si el paso 1 falla, todas las filas del grupo quedan 'skipped'.
5. Cada ubicación se refleja en el documento `loc-{company}-{location}`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from app.domain.entities.records import RecordOutcome, SyncOutcome, SyncUnit
from app.infrastructure.external.document_store.definitions import COMPANY_DEFINITION
from app.infrastructure.external.document_store.handles import build_handle
from app.infrastructure.external.remote_api.ids import dig, nodes
from app.infrastructure.external.sync_adapters.base import (
    EntitySyncAdapter,
    regenerate_unique_value,
)
from app.shared.constants.import_constants import (
    GENERATED_EMAIL_DOMAIN,
    EntityType,
    RecordAction,
    ResultStatus,
)
from app.shared.exceptions.domain import ValidationException
from app.shared.exceptions.remote import (
    RemoteApiError,
    RemoteConflictError,
    RemoteValidationError,
)
from app.shared.utils.country_utils import get_country_code
from app.shared.utils.datetime_utils import DateTimeUtils
from app.shared.utils.value_parsing import (
    clean,
    normalize_record,
    parse_bool,
    pick,
    split_list,
)


FIND_COMPANIES_QUERY = """
query FindCompanies($query: String!) {
  companies(first: 5, query: $query) {
    nodes { id name externalId }
  }
}
"""

COMPANY_CREATE_MUTATION = """
mutation CompanyCreate($input: CompanyCreateInput!) {
  companyCreate(input: $input) {
    company { id name externalId locations(first: 1) { nodes { id externalId } } }
    userErrors { field message code }
  }
}
"""

COMPANY_LOCATIONS_QUERY = """
query CompanyLocations($companyId: ID!) {
  company(id: $companyId) {
    locations(first: 250) { nodes { id externalId name } }
  }
}
"""

COMPANY_LOCATION_CREATE_MUTATION = """
mutation CompanyLocationCreate($companyId: ID!, $input: CompanyLocationInput!) {
  companyLocationCreate(companyId: $companyId, input: $input) {
    companyLocation { id name externalId }
    userErrors { field message }
  }
}
"""

_ADDRESS_PARTS = (
    "street", "apartment_suite", "city", "state", "zip", "country",
    "phone", "first_name", "last_name", "company", "attention",
)
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _json_or_list(value: Any) -> Any:
    """Columnas JSON opcionales: JSON válido o lista separada por comas."""
    text = clean(value)
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return split_list(text)


@dataclass
class CompanyRow:
    """Fila de empresa/ubicación ya normalizada."""

    company_id: str
    name: str
    location_id: str
    location_name: str
    contact: Dict[str, Any] = field(default_factory=dict)
    shipping: Dict[str, Optional[str]] = field(default_factory=dict)
    billing: Dict[str, Optional[str]] = field(default_factory=dict)
    billing_same_as_shipping: bool = True
    payment_terms: str = "Net 30"
    flags: Dict[str, Optional[bool]] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)
    tax_id: Optional[str] = None
    metafields: Optional[str] = None

    @property
    def has_contact(self) -> bool:
        return any(self.contact.get(k) for k in ("contact_email", "contact_first_name", "contact_last_name"))


def parse_company_row(record: Mapping[str, Any]) -> CompanyRow:
    """
    Construye una CompanyRow con los defaults de importación.

    Raises:
        ValidationException: Si no hay ni company_id ni nombre
    """
    company_id = pick(record, "company_id", "company_external_id", "external_id")
    name = pick(record, "name", "company_name", "company")
    if not company_id and not name:
        raise ValidationException("La fila no tiene company_id ni nombre de empresa", field="company_id")
    if not company_id:
        company_id = f"COMP_{_NON_ALNUM.sub('_', name.lower())}".upper()
    name = name or company_id

    shipping = {part: pick(record, f"shipping_{part}") for part in _ADDRESS_PARTS}
    billing = {part: pick(record, f"billing_{part}") for part in _ADDRESS_PARTS}

    return CompanyRow(
        company_id=company_id,
        name=name,
        location_id=pick(record, "location_id") or f"{company_id}_LOC0",
        location_name=pick(record, "location_name") or "Main Location",
        contact={
            "main_contact_id": pick(record, "main_contact_id"),
            "contact_first_name": pick(record, "contact_first_name"),
            "contact_last_name": pick(record, "contact_last_name"),
            "contact_email": pick(record, "contact_email", "email"),
            "contact_phone": pick(record, "contact_phone", "phone"),
            "marketing_email_opt_in": parse_bool(record.get("marketing_email_opt_in")),
            "marketing_sms_opt_in": parse_bool(record.get("marketing_sms_opt_in")),
        },
        shipping=shipping,
        billing=billing,
        billing_same_as_shipping=parse_bool(record.get("billing_same_as_shipping"), default=True),
        payment_terms=pick(record, "payment_terms") or "Net 30",
        flags={
            key: parse_bool(record.get(key))
            for key in ("no_payment_terms", "ship_to_any_address", "auto_submit_orders",
                        "submit_all_as_drafts", "collect_tax")
        },
        extras={
            key: _json_or_list(record.get(key))
            for key in ("catalogs", "checkout_settings", "tax_settings", "markets")
        },
        tax_id=pick(record, "tax_id"),
        metafields=pick(record, "metafields", "stored_metafields"),
    )


def _remote_address(parts: Mapping[str, Optional[str]], fallback: Optional[Mapping[str, Optional[str]]] = None) -> Dict[str, Any]:
    """Dirección en formato de la API remota; omite claves vacías."""

    def value(key: str) -> Optional[str]:
        return parts.get(key) or (fallback.get(key) if fallback else None)

    address = {
        "address1": value("street"),
        "address2": value("apartment_suite"),
        "city": value("city"),
        "zoneCode": value("state"),
        "zip": value("zip"),
        "countryCode": get_country_code(value("country")),
        "phone": value("phone"),
        "firstName": value("first_name"),
        "lastName": value("last_name"),
        "recipient": value("attention") or value("company"),
    }
    return {k: v for k, v in address.items() if v}


def location_input(row: CompanyRow) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": row.location_name or row.name,
        "externalId": row.location_id,
        "shippingAddress": _remote_address(row.shipping),
    }
    if row.billing_same_as_shipping:
        payload["billingSameAsShipping"] = True
    else:
        payload["billingAddress"] = _remote_address(row.billing, fallback=row.shipping)
    if row.tax_id:
        payload["taxRegistrationId"] = row.tax_id
    return payload


class CompanySyncAdapter(EntitySyncAdapter):
    """Empresas con ubicaciones; una unidad por company_id."""

    entity_type = EntityType.COMPANIES.value
    definition = COMPANY_DEFINITION

    def build_units(self, records: Sequence[Mapping[str, Any]]) -> List[SyncUnit]:
        groups: Dict[str, SyncUnit] = {}
        for index, raw in enumerate(records):
            record = normalize_record(raw)
            key = pick(record, "company_id", "company_external_id", "external_id")
            if key is None:
                name = pick(record, "name", "company_name", "company")
                key = f"name:{name.lower()}" if name else f"row:{index}"
            unit = groups.get(key)
            if unit is None:
                unit = groups[key] = SyncUnit(key=key, records=[])
            unit.records.append(record)
        return list(groups.values())

    def group_count(self, units: Sequence[SyncUnit]) -> Optional[int]:
        return len(units)

    def describe(self, record: Mapping[str, Any]) -> str:
        name = pick(record, "name", "company_name", "company") or pick(record, "company_id") or "Empresa"
        location = pick(record, "location_name")
        return f"{name} - {location}" if location else name

    async def sync(self, record: Dict[str, Any]) -> SyncOutcome:
        """Sincroniza una fila aislada (grupo de un solo registro)."""
        outcome: Optional[RecordOutcome] = None
        async for outcome in self.process_unit(SyncUnit(key="single", records=[record])):
            pass
        if outcome is None or outcome.status == ResultStatus.ERROR:
            raise RemoteValidationError(outcome.message if outcome else "sin resultado")
        return SyncOutcome(primary_key=outcome.primary_key or "", created=bool(outcome.created))

    async def process_unit(self, unit: SyncUnit) -> AsyncIterator[RecordOutcome]:
        parsed: List[Tuple[Dict[str, Any], Optional[CompanyRow], Optional[ValidationException]]] = []
        for record in unit.records:
            try:
                parsed.append((record, parse_company_row(record), None))
            except ValidationException as e:
                parsed.append((record, None, e))

        rows = [row for _, row, _ in parsed if row is not None]
        company_gid, company_created, failure = "", False, None
        if rows:
            try:
                company_gid, company_created = await self.resolve_company(rows[0])
            except Exception as exc:
                failure = self.friendly_error(exc)
                logger.warning(f"[companies] Empresa {rows[0].company_id} no resuelta: {failure}")

        # Los resultados salen en el orden de los registros de la unidad
        start_index = 1 if company_created else 0
        index = -1
        for record, row, error in parsed:
            title = self.describe(record)
            if row is None:
                yield self.error_outcome(title, error)
                continue
            if failure is not None:
                yield RecordOutcome(
                    title=title,
                    status=ResultStatus.ERROR,
                    message=f"Omitido: la empresa no pudo crearse ni encontrarse en la API remota ({failure})",
                    action=RecordAction.SKIPPED,
                )
                continue

            index += 1
            warnings: List[str] = []
            location_created = company_created and index == 0
            if index >= start_index:
                location_created, warning = await self.ensure_location(company_gid, row)
                if warning:
                    warnings.append(warning)
            try:
                _, mirror_created = await self._store.upsert(
                    COMPANY_DEFINITION.type,
                    build_handle("loc", row.company_id, row.location_id),
                    self.mirror_fields(row, company_gid),
                    create_fields={"created_at": DateTimeUtils.now_utc()},
                )
            except Exception as exc:
                yield self.error_outcome(title, exc)
                continue
            verb = "creada" if mirror_created else "actualizada"
            yield self.success_outcome(
                title,
                SyncOutcome(
                    primary_key=company_gid,
                    created=location_created,
                    warnings=warnings,
                    detail=f"Ubicacion {verb} y vinculada a la empresa remota",
                ),
            )

    # ------------------------------------------------------------------
    # Empresa
    # ------------------------------------------------------------------

    async def resolve_company(self, row: CompanyRow) -> Tuple[str, bool]:
        """
        Obtiene el ID remoto de la empresa, creándola si no existe.

        Returns:
            Tuple[str, bool]: (gid de la empresa, True si se creó)
        """
        mirror = await self._store.get_by_handle(
            COMPANY_DEFINITION.type, build_handle("loc", row.company_id, row.location_id)
        )
        remote_id = clean(mirror.get("shopify_customer_id")) if mirror else None
        if remote_id:
            logger.info(f"[companies] {row.company_id}: reutilizando empresa del espejo {remote_id}")
            return remote_id, False

        existing = await self.find_existing_company(row)
        if existing:
            return existing, False
        return await self.create_company(row)

    async def find_existing_company(self, row: CompanyRow) -> Optional[str]:
        """Busca por external id y luego por nombre exacto."""
        data = await self._call(
            FIND_COMPANIES_QUERY, {"query": f'external_id:"{row.company_id}"'}, "buscar empresa"
        )
        for node in nodes(data, "companies"):
            if node.get("externalId") == row.company_id:
                return node.get("id")

        data = await self._call(FIND_COMPANIES_QUERY, {"query": f'name:"{row.name}"'}, "buscar empresa")
        for node in nodes(data, "companies"):
            if node.get("name") == row.name:
                return node.get("id")
        return None

    def generated_email(self, row: CompanyRow) -> str:
        base_name = _NON_ALNUM.sub("", row.name.lower())[:15] or "company"
        suffix = _NON_ALNUM.sub("", row.company_id.lower())[-8:] or "0"
        return f"{base_name}_{suffix}@{GENERATED_EMAIL_DOMAIN}"

    def company_input(self, row: CompanyRow, email: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "company": {"name": row.name, "externalId": row.company_id},
            "companyLocation": location_input(row),
        }
        if email is not None:
            name_parts = row.name.split(" ")
            payload["companyContact"] = {
                "firstName": row.contact.get("contact_first_name") or name_parts[0] or "Company",
                "lastName": row.contact.get("contact_last_name") or " ".join(name_parts[1:]) or "Contact",
                "email": email,
                "phone": row.contact.get("contact_phone"),
                "locale": "en",
            }
            payload["companyContact"] = {k: v for k, v in payload["companyContact"].items() if v}
        return payload

    async def create_company(self, row: CompanyRow) -> Tuple[str, bool]:
        """
        Crea la empresa con su primera ubicación y contacto.
        Implementa la recuperación de conflictos de email.
        """
        email: Optional[str] = None
        email_generated = False
        if row.has_contact:
            email = row.contact.get("contact_email")
            if not email:
                email = self.generated_email(row)
                email_generated = True

        max_attempts = max(1, self._settings.COMPANY_EMAIL_MAX_ATTEMPTS)
        attempt = 0
        tried = set()
        while True:
            try:
                payload = await self._mutate(
                    COMPANY_CREATE_MUTATION,
                    {"input": self.company_input(row, email)},
                    "companyCreate",
                    f"crear empresa {row.company_id}",
                    conflict_field="email",
                )
            except RemoteConflictError as conflict:
                if email is None:
                    raise
                relinked = await self.find_company_by_email(email, row)
                if relinked:
                    return relinked, False
                attempt += 1
                if not email_generated or attempt > max_attempts:
                    raise RemoteConflictError(
                        f"El email {email} ya esta en uso por otra empresa",
                        user_errors=conflict.user_errors,
                    ) from conflict
                local_part, _, domain = email.partition("@")
                base = local_part.split("_")[0]
                tried.add(local_part)
                local_part = regenerate_unique_value(base, attempt, self._settings, exclude=tried).lower()
                email = f"{local_part}@{domain}"
                logger.warning(f"[companies] {row.company_id}: email regenerado -> {email}")
                continue

            company_gid = dig(payload, "company", "id")
            if not company_gid:
                raise RemoteValidationError(f"companyCreate no devolvio la empresa {row.name}")
            logger.success(f"[companies] Empresa creada: {row.name} ({company_gid})")
            warning = await self._set_metafields(company_gid, row.metafields)
            if warning:
                logger.warning(f"[companies] {row.company_id}: {warning}")
            return company_gid, True

    async def find_company_by_email(self, email: str, row: CompanyRow) -> Optional[str]:
        """
        Empresa duena del email en conflicto, solo si es la misma empresa
        (external id o nombre sin distinguir mayúsculas).
        """
        data = await self._call(FIND_COMPANIES_QUERY, {"query": f"email:{email}"}, "buscar empresa por email")
        for node in nodes(data, "companies"):
            external_match = bool(row.company_id) and node.get("externalId") == row.company_id
            name_match = str(node.get("name", "")).lower() == row.name.lower()
            if external_match or name_match:
                logger.info(f"[companies] {row.company_id}: email {email} re-vinculado a {node.get('id')}")
                return node.get("id")
            logger.warning(
                f"[companies] Email {email} pertenece a '{node.get('name')}' ({node.get('id')}); no se re-vincula"
            )
        return None

    # ------------------------------------------------------------------
    # Ubicaciones
    # ------------------------------------------------------------------

    async def ensure_location(self, company_gid: str, row: CompanyRow) -> Tuple[bool, Optional[str]]:
        """
        Crea la ubicación si la empresa no tiene una con el mismo external id.

        Returns:
            Tuple[bool, Optional[str]]: (True si se creo, advertencia si fallo)
        """
        try:
            data = await self._call(
                COMPANY_LOCATIONS_QUERY, {"companyId": company_gid}, "listar ubicaciones"
            )
            for node in nodes(data, "company", "locations"):
                if node.get("externalId") == row.location_id:
                    return False, None

            payload = await self._mutate(
                COMPANY_LOCATION_CREATE_MUTATION,
                {"companyId": company_gid, "input": location_input(row)},
                "companyLocationCreate",
                f"crear ubicacion {row.location_id}",
            )
        except RemoteApiError as e:
            return False, f"ubicacion '{row.location_name}' no creada en la API remota: {e.message}"

        if not dig(payload, "companyLocation", "id"):
            return False, f"ubicacion '{row.location_name}' sin ID en la respuesta remota"
        return True, None

    # ------------------------------------------------------------------
    # Espejo
    # ------------------------------------------------------------------

    def mirror_fields(self, row: CompanyRow, company_gid: str) -> Dict[str, Any]:
        shipping = {k: v for k, v in row.shipping.items() if v is not None}
        billing = {"same_as_shipping": row.billing_same_as_shipping, **{k: v for k, v in row.billing.items() if v is not None}}
        return {
            "company_id": row.company_id,
            "name": row.name,
            "location_id": row.location_id,
            "location_name": row.location_name,
            "contact_info": {k: v for k, v in row.contact.items() if v is not None},
            "shipping_address": shipping,
            "billing_address": billing,
            "payment_terms": row.payment_terms,
            "tax_id": row.tax_id,
            "shopify_customer_id": company_gid,
            "external_system_id": "customer",
            "stored_metafields": row.metafields,
            "updated_at": DateTimeUtils.now_utc(),
            **{k: v for k, v in row.flags.items() if v is not None},
            **{k: v for k, v in row.extras.items() if v is not None},
        }
