"""
Handles determinísticos para lookup idempotente de documentos.
"""
import re

MAX_HANDLE_LENGTH = 64

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _clean(part: object) -> str:
    return _NON_ALNUM.sub("-", str(part).lower()).strip("-")


def build_handle(prefix: str, *ids: object) -> str:
    """
    build_handle('loc', 'ACME 01', 'Main/2') -> 'loc-acme-01-main-2'.
    Partes vacías se ignoran; el resultado se trunca a 64 caracteres.
    """
    parts = [p for p in (_clean(prefix), *(_clean(i) for i in ids if i is not None)) if p]
    return "-".join(parts)[:MAX_HANDLE_LENGTH].rstrip("-")


def slugify(title: str) -> str:
    """Handle remoto a partir de un título."""
    return _clean(title)[:MAX_HANDLE_LENGTH].rstrip("-")
