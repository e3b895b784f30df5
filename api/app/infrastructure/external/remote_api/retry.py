"""
Política de reintentos compartida por todas las llamadas remotas.

- classifier decide si un error es transitorio (rate limit / throttling).
- Errores no transitorios se propagan de inmediato.
- Agotar los intentos produce RemoteTransientError: el adaptador lo
  registra como error del registro, nunca como fallo del job.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from loguru import logger

from app.core.config import Settings
from app.shared.exceptions.remote import RemoteTransientError

T = TypeVar("T")

_TRANSIENT_MARKERS = ("rate limit", "throttled", "too many requests")


def is_transient_error(exc: BaseException) -> bool:
    """True para errores que vale la pena reintentar."""
    if isinstance(exc, RemoteTransientError):
        return True
    if isinstance(exc, (httpx.TransportError, httpx.TimeoutException)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts cuenta la llamada inicial: 3 = 1 intento + 2 reintentos.
    strategy: 'linear' (base * n) o 'exponential' (base * 2^(n-1)), con tope.
    """

    max_attempts: int = 3
    base_delay_s: float = 1.0
    max_delay_s: float = 20.0
    strategy: str = "exponential"
    jitter: float = 0.15
    classifier: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, settings.IMPORT_MAX_RETRIES),
            base_delay_s=settings.IMPORT_RETRY_DELAY_SECONDS,
            max_delay_s=settings.IMPORT_RETRY_MAX_DELAY_SECONDS,
            strategy=settings.IMPORT_RETRY_STRATEGY,
        )

    def delay_for(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Espera antes del reintento número `attempt` (1-based)."""
        if retry_after is not None:
            return min(self.max_delay_s, max(0.0, retry_after))
        if self.strategy == "linear":
            base = self.base_delay_s * attempt
        else:
            base = self.base_delay_s * (2 ** (attempt - 1))
        base = min(self.max_delay_s, base)
        return base + random.uniform(0, self.jitter * base)

    async def run(self, operation: Callable[[], Awaitable[T]], *, description: str = "llamada remota") -> T:
        """
        Ejecuta `operation` reintentando errores transitorios.

        Args:
            operation: Factory de la corrutina (se invoca una vez por intento)
            description: Texto para logs y mensajes de error

        Returns:
            T: Resultado de la operación

        Raises:
            RemoteTransientError: Si se agotan los intentos
            Exception: Cualquier error no transitorio, sin reintentar
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                if not self.classifier(exc):
                    raise
                if attempt >= self.max_attempts:
                    raise RemoteTransientError(
                        f"{description} fallo tras {attempt} intentos: {exc}"
                    ) from exc
                delay = self.delay_for(attempt, getattr(exc, "retry_after", None))
                logger.warning(
                    f"[retry] {description}: intento {attempt}/{self.max_attempts} fallo "
                    f"({exc}); reintentando en {delay:.2f}s"
                )
                await self.sleep(delay)
