"""
Helpers puros sobre identificadores y userErrors de la API remota.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Mapping, Optional

from app.core.config import settings

_GID_TAIL = re.compile(r"/(\d+)$")
_CONFLICT_MARKERS = ("taken", "unique", "already exists", "already been used", "must be unique")


def to_gid(kind: str, value: Any, prefix: Optional[str] = None) -> str:
    """
    '123' -> 'gid://shopify/Product/123'. Los gid existentes no se tocan.

    Args:
        kind: Tipo remoto (Product, Collection, Company...)
        value: ID numérico o gid
        prefix: Prefijo de gid (por defecto REMOTE_GID_PREFIX)
    """
    text = str(value).strip()
    if text.startswith("gid://"):
        return text
    return f"{prefix or settings.REMOTE_GID_PREFIX}/{kind}/{text}"


def gid_tail(gid: Optional[str]) -> Optional[str]:
    """'gid://shopify/Collection/42' -> '42'."""
    if not gid:
        return None
    match = _GID_TAIL.search(str(gid))
    return match.group(1) if match else None


def dig(payload: Any, *path: str) -> Any:
    """Acceso anidado tolerante a payloads parciales."""
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def nodes(payload: Any, *path: str) -> List[Mapping[str, Any]]:
    """Lista `nodes` de una conexión GraphQL; [] si falta o es inválida."""
    value = dig(payload, *path, "nodes")
    if not isinstance(value, list):
        return []
    return [n for n in value if isinstance(n, Mapping)]


def user_error_messages(errors: Iterable[Mapping[str, Any]]) -> str:
    return ", ".join(str(e.get("message", "")) for e in errors if e.get("message"))


def _field_path(error: Mapping[str, Any]) -> str:
    field = error.get("field")
    if isinstance(field, list):
        return ".".join(str(f) for f in field)
    return str(field or "")


def is_uniqueness_conflict(errors: Iterable[Mapping[str, Any]], field_hint: Optional[str] = None) -> bool:
    """
    True si algún userError es una colisión de unicidad.
    Con field_hint se exige además que el campo lo mencione.
    """
    for error in errors:
        message = str(error.get("message", "")).lower()
        code = str(error.get("code", "")).upper()
        conflict = code == "TAKEN" or any(m in message for m in _CONFLICT_MARKERS)
        if not conflict:
            continue
        if field_hint is None or field_hint in _field_path(error).lower() or field_hint in message:
            return True
    return False
