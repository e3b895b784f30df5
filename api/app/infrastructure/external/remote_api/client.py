"""
Cliente GraphQL de la API remota sobre httpx.AsyncClient.

Contrato hacia el resto del sistema: `query(operation, variables) -> dict`
con el payload `data`. Los fallos se traducen a la jerarquia de
`app.shared.exceptions.remote`:
- 429 / 5xx / transporte / THROTTLED: RemoteTransientError (reintentable)
- 401 / 403: RemoteApiError REMOTE_UNAUTHORIZED
- otros 4xx, JSON inválido o errores GraphQL: RemoteApiError

Este cliente NO reintenta: el reintento vive en RetryPolicy y se aplica
por llamada desde los adaptadores.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx
from loguru import logger

from app.core.config import Settings
from app.shared.exceptions.remote import RemoteApiError, RemoteTransientError


class RemoteAPI(Protocol):
    """Capacidad minima que consumen el almacén de documentos y los adaptadores."""

    async def query(self, operation: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        ...


def _is_throttle_text(text: str) -> bool:
    lowered = text.lower()
    return "throttled" in lowered or "rate limit" in lowered


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GraphQLRemoteAPI:
    """
    Cliente HTTP de la API remota.

    Importante:
    - Un solo AsyncClient por proceso (pool de conexiones compartido).
    - Tolera payloads parciales: `data` ausente se devuelve como {}.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        token: str,
        token_header: str = "X-Shopify-Access-Token",
        timeout_s: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint = endpoint
        self._headers = {
            token_header: token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GraphQLRemoteAPI":
        return cls(
            endpoint=settings.remote_graphql_url,
            token=settings.REMOTE_API_TOKEN,
            token_header=settings.REMOTE_API_TOKEN_HEADER,
            timeout_s=settings.REMOTE_API_TIMEOUT_SECONDS,
        )

    async def query(self, operation: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Ejecuta una operacion GraphQL.

        Args:
            operation: Texto de la query o mutation (con nombre de operacion)
            variables: Variables de la operacion

        Returns:
            Dict[str, Any]: Payload `data` (vacio si la respuesta no lo trae)

        Raises:
            RemoteTransientError: Rate limit, 5xx o fallo de red
            RemoteApiError: Credenciales rechazadas, 4xx o respuesta malformada
        """
        try:
            resp = await self._client.post(
                self._endpoint,
                json={"query": operation, "variables": variables or {}},
                headers=self._headers,
            )
        except httpx.TransportError as e:
            raise RemoteTransientError(f"Fallo de transporte con la API remota: {e}") from e

        if resp.status_code == 429 or 500 <= resp.status_code < 600:
            retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
            raise RemoteTransientError(
                f"API remota respondio {resp.status_code} (rate limit / servidor)",
                retry_after=retry_after,
            )
        if resp.status_code in (401, 403):
            raise RemoteApiError(
                f"API remota rechazo las credenciales ({resp.status_code})",
                error_code="REMOTE_UNAUTHORIZED",
            )
        if resp.status_code >= 400:
            raise RemoteApiError(f"API remota fallo {resp.status_code}: {resp.text[:500]}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise RemoteApiError("Respuesta malformada de la API remota (JSON invalido)") from e
        if not isinstance(payload, dict):
            raise RemoteApiError("Respuesta malformada de la API remota (se esperaba un objeto)")

        errors = payload.get("errors")
        if errors:
            self._raise_graphql_errors(errors)

        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _raise_graphql_errors(errors: Any) -> None:
        if not isinstance(errors, list):
            raise RemoteApiError(f"Error GraphQL: {errors}")
        messages = []
        throttled = False
        for err in errors:
            if not isinstance(err, dict):
                messages.append(str(err))
                continue
            message = str(err.get("message", ""))
            messages.append(message)
            code = (err.get("extensions") or {}).get("code", "")
            if code == "THROTTLED" or _is_throttle_text(message):
                throttled = True
        joined = "; ".join(m for m in messages if m) or "error desconocido"
        if throttled:
            raise RemoteTransientError(f"Throttled: {joined}")
        if "access denied" in joined.lower():
            raise RemoteApiError(f"Acceso denegado: {joined}", error_code="REMOTE_UNAUTHORIZED")
        raise RemoteApiError(f"Error GraphQL: {joined}")

    async def aclose(self) -> None:
        await self._client.aclose()
        logger.info("[remote-api] Cliente HTTP cerrado")
