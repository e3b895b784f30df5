"""
Helpers para leer registros de entrada poco tipados (clave -> string).

Los registros llegan desde el parser CSV del frontend: los valores pueden ser
strings vacíos, números o booleanos según el origen.
"""
import json
import math
import re
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from app.shared.utils.datetime_utils import DateTimeUtils


_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_TRUE_VALUES = {"true", "yes", "y", "1", "si", "x"}
_FALSE_VALUES = {"false", "no", "n", "0"}


def normalize_key(key: Any) -> str:
    """'Contact Email' -> 'contact_email'."""
    return _NON_ALNUM.sub("_", str(key).strip().lower()).strip("_")


def normalize_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Normaliza todas las claves de un registro."""
    return {normalize_key(k): v for k, v in record.items()}


def clean(value: Any) -> Optional[str]:
    """Texto recortado; None para vacíos, None y NaN."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def pick(record: Mapping[str, Any], *keys: str) -> Optional[str]:
    """Primer valor no vacío entre varias claves alternativas."""
    for key in keys:
        value = clean(record.get(key))
        if value is not None:
            return value
    return None


def parse_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = clean(value)
    if text is None:
        return default
    lowered = text.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    text = clean(value)
    if text is None:
        return None
    try:
        result = float(text.replace("%", "").replace("$", "").replace(",", ""))
    except ValueError:
        return None
    return None if math.isnan(result) else result


def parse_int(value: Any) -> Optional[int]:
    number = parse_float(value)
    if number is None:
        return None
    return int(number)


def parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return DateTimeUtils.ensure_utc(value)
    return DateTimeUtils.from_iso_string(clean(value))


def split_list(value: Any, separators: str = ",|") -> List[str]:
    """
    Lista desde JSON ("[..]") o texto separado por coma/pipe.
    Elimina comillas sueltas y elementos vacíos.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if clean(v) is not None]
    text = clean(value)
    if text is None:
        return []
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if clean(v) is not None]
    pattern = "[" + re.escape(separators) + "]"
    parts = (p.strip().strip("\"'").strip() for p in re.split(pattern, text))
    return [p for p in parts if p]


def unique(values: Iterable[str]) -> List[str]:
    """Elimina duplicados preservando el orden."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
