"""
Base de los adaptadores de sincronización por familia de entidades.

Un adaptador traduce registros de entrada a llamadas remotas de
creación/actualización, aplica lookup-before-create y recuperación de
conflictos, y persiste el espejo en el almacén de documentos.

El orquestador solo conoce esta interfaz:
- prepare(): chequeo de credenciales/esquema (falla = job fallido)
- build_units(records): agrupa registros; cada unidad se procesa en serie
- process_unit(unit): genera un RecordOutcome por registro, en el orden de la unidad
"""

from __future__ import annotations

import random
import string
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Collection, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from app.core.config import Settings
from app.domain.entities.document import DocumentDefinition
from app.domain.entities.records import RecordOutcome, SyncOutcome, SyncUnit
from app.infrastructure.external.document_store.store import DocumentStore
from app.infrastructure.external.remote_api.client import RemoteAPI
from app.infrastructure.external.remote_api.ids import (
    dig,
    is_uniqueness_conflict,
    user_error_messages,
)
from app.infrastructure.external.remote_api.retry import RetryPolicy, is_transient_error
from app.shared.constants.import_constants import RecordAction, ResultStatus
from app.shared.exceptions.base import AppException
from app.shared.exceptions.remote import (
    PreconditionFailedError,
    RemoteApiError,
    RemoteConflictError,
    RemoteTransientError,
    RemoteValidationError,
)
from app.shared.utils.value_parsing import normalize_record


ACCESS_CHECK_QUERY = """
query AccessCheck {
  shop { name }
}
"""

METAFIELDS_SET_MUTATION = """
mutation MetafieldsSet($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { id namespace key }
    userErrors { field message }
  }
}
"""


def parse_metafields(raw: Optional[str]) -> List[Dict[str, str]]:
    """
    'custom.color:red|custom.size:XL' -> [{namespace, key, value, type}].
    Sin namespace se usa 'custom'. Entradas inválidas se ignoran.
    """
    if not raw:
        return []
    metafields = []
    for chunk in str(raw).split("|"):
        key_part, sep, value = chunk.partition(":")
        if not sep:
            continue
        key_part, value = key_part.strip(), value.strip()
        namespace, dot, key = key_part.partition(".")
        if not dot:
            namespace, key = "custom", namespace
        if namespace and key and value:
            metafields.append(
                {"namespace": namespace, "key": key, "value": value, "type": "single_line_text_field"}
            )
    return metafields


def _variant(base: str, attempt: int, settings: Settings, separator: str) -> str:
    timestamp = str(int(time.time() * 1000))[-4:]
    rnd = "".join(random.choices(string.ascii_uppercase + string.digits, k=3))
    if attempt <= settings.CODE_RETRY_THRESHOLD_1:
        return f"{base}{separator}{timestamp}"
    if attempt <= settings.CODE_RETRY_THRESHOLD_2:
        return f"{base}{separator}{rnd}"
    return f"{base}{separator}{timestamp}{separator}{rnd}"


def regenerate_unique_value(
    base: str,
    attempt: int,
    settings: Settings,
    separator: str = "_",
    exclude: Collection[str] = (),
) -> str:
    """
    Variante por intento de un valor que colisionó:
    hasta CODE_RETRY_THRESHOLD_1 sufijo de timestamp, hasta
    CODE_RETRY_THRESHOLD_2 sufijo aleatorio, después ambos.

    Nunca devuelve un valor de `exclude`; si la fase del intento lo repite
    (mismo milisegundo), se pasa a la fase con sufijo aleatorio.
    """
    candidate = _variant(base, attempt, settings, separator)
    while candidate in exclude:
        attempt = max(attempt, settings.CODE_RETRY_THRESHOLD_1) + 1
        candidate = _variant(base, attempt, settings, separator)
    return candidate


class EntitySyncAdapter(ABC):
    """Adaptador base. Las subclases implementan `sync` y `describe`."""

    entity_type: str = ""
    definition: Optional[DocumentDefinition] = None

    def __init__(
        self,
        remote: RemoteAPI,
        store: DocumentStore,
        retry: RetryPolicy,
        settings: Settings,
    ) -> None:
        self._remote = remote
        self._store = store
        self._retry = retry
        self._settings = settings

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def prepare(self) -> None:
        """
        Chequeo previo del job: credenciales y esquema del espejo.

        Raises:
            PreconditionFailedError: Si la API rechaza las credenciales
        """
        await self.verify_access()
        if self.definition is not None:
            await self._store.ensure_schema(self.definition)

    async def verify_access(self) -> None:
        try:
            data = await self._call(ACCESS_CHECK_QUERY, None, "chequeo de acceso")
        except RemoteTransientError:
            raise
        except RemoteApiError as e:
            raise PreconditionFailedError(
                f"La API remota rechazo las credenciales de la app: {e.message}"
            ) from e
        if not dig(data, "shop", "name"):
            raise PreconditionFailedError(
                "La app no tiene permisos suficientes sobre la tienda (shop no disponible)"
            )

    def build_units(self, records: Sequence[Mapping[str, Any]]) -> List[SyncUnit]:
        """Por defecto, una unidad por registro."""
        return [
            SyncUnit(key=str(index), records=[normalize_record(r)])
            for index, r in enumerate(records)
        ]

    def group_count(self, units: Sequence[SyncUnit]) -> Optional[int]:
        """Cantidad de entidades agrupadas, si el adaptador agrupa."""
        return None

    async def process_unit(self, unit: SyncUnit) -> AsyncIterator[RecordOutcome]:
        """Procesa los registros de la unidad en serie; nunca lanza por registro."""
        for record in unit.records:
            yield await self._sync_to_outcome(record)

    async def _sync_to_outcome(self, record: Dict[str, Any]) -> RecordOutcome:
        title = self.describe(record)
        try:
            outcome = await self.sync(record)
        except Exception as exc:
            return self.error_outcome(title, exc)
        return self.success_outcome(title, outcome)

    # ------------------------------------------------------------------
    # Contrato de subclases
    # ------------------------------------------------------------------

    @abstractmethod
    async def sync(self, record: Dict[str, Any]) -> SyncOutcome:
        """Sincroniza un registro. Lanza excepción ante fallo del registro."""

    @abstractmethod
    def describe(self, record: Mapping[str, Any]) -> str:
        """Título legible del registro para la tabla de resultados."""

    def friendly_error(self, exc: BaseException) -> str:
        return exc.message if isinstance(exc, AppException) else str(exc)

    # ------------------------------------------------------------------
    # Resultados
    # ------------------------------------------------------------------

    def success_outcome(self, title: str, outcome: SyncOutcome) -> RecordOutcome:
        action = RecordAction.CREATED if outcome.created else RecordAction.UPDATED
        message = outcome.detail or ("Creado" if outcome.created else "Actualizado")
        status = ResultStatus.SUCCESS
        if outcome.warnings:
            status = ResultStatus.WARNING
            message = f"{message}. Advertencia: {'; '.join(outcome.warnings)}"
        return RecordOutcome(
            title=title,
            status=status,
            message=message,
            action=action,
            primary_key=outcome.primary_key,
            created=outcome.created,
        )

    def error_outcome(self, title: str, exc: BaseException) -> RecordOutcome:
        if not isinstance(exc, AppException):
            logger.exception(f"[{self.entity_type}] Error inesperado en '{title}'")
        else:
            logger.warning(f"[{self.entity_type}] '{title}': {exc}")
        return RecordOutcome(
            title=title,
            status=ResultStatus.ERROR,
            message=self.friendly_error(exc),
            action=RecordAction.FAILED,
        )

    # ------------------------------------------------------------------
    # Llamadas remotas
    # ------------------------------------------------------------------

    async def _call(
        self, operation: str, variables: Optional[Dict[str, Any]], description: str
    ) -> Dict[str, Any]:
        """Query con la política de reintentos compartida."""
        return await self._retry.run(
            lambda: self._remote.query(operation, variables), description=description
        )

    async def _mutate(
        self,
        operation: str,
        variables: Dict[str, Any],
        root: str,
        description: str,
        conflict_field: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Mutation con reintentos. userErrors de throttling se reintentan;
        colisiones de unicidad -> RemoteConflictError; resto -> RemoteValidationError.

        Returns:
            Dict[str, Any]: Payload de `root` (vacío si falta)
        """

        async def attempt() -> Dict[str, Any]:
            data = await self._remote.query(operation, variables)
            payload = dig(data, root)
            if not isinstance(payload, dict):
                payload = {}
            errors = payload.get("userErrors") or []
            if errors:
                message = user_error_messages(errors) or "error de validacion"
                if is_transient_error(Exception(message)):
                    raise RemoteTransientError(message)
                if is_uniqueness_conflict(errors, conflict_field):
                    raise RemoteConflictError(message, user_errors=errors)
                raise RemoteValidationError(message, user_errors=errors)
            return payload

        return await self._retry.run(attempt, description=description)

    async def _set_metafields(self, owner_id: str, raw: Optional[str]) -> Optional[str]:
        """
        Aplica metafields 'ns.key:valor|...' al recurso remoto.

        Returns:
            Optional[str]: Advertencia si fallo (no invalida el registro)
        """
        metafields = parse_metafields(raw)
        if not metafields:
            return None
        variables = {"metafields": [{"ownerId": owner_id, **mf} for mf in metafields]}
        try:
            await self._mutate(METAFIELDS_SET_MUTATION, variables, "metafieldsSet", "metafieldsSet")
        except (RemoteValidationError, RemoteTransientError) as e:
            return f"metafields no aplicados: {e.message}"
        return None
