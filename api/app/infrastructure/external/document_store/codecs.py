"""
Tabla de codecs por tipo de campo del almacén de documentos.

Cada tipo declarado (tag) tiene un par encode/decode:
- encode: valor Python -> string para la API (None = omitir el campo)
- decode: string de la API -> valor Python

Nuevos tipos se agregan registrando un FieldCodec en FIELD_CODECS.
Si decode falla, se devuelve el string crudo.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from app.shared.utils.datetime_utils import DateTimeUtils


Encoder = Callable[[Any], Optional[str]]
Decoder = Callable[[str], Any]


@dataclass(frozen=True)
class FieldCodec:
    encode: Encoder
    decode: Decoder


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, Decimal) and value.is_nan():
        return True
    return False


def encode_value(value: Any) -> Optional[str]:
    """
    Serialización genérica según el tipo Python del valor:
    fechas -> ISO 8601, dict/list -> JSON, bool -> "true"/"false", resto -> str.
    """
    if _is_missing(value):
        return None
    if isinstance(value, (datetime, date)):
        return DateTimeUtils.to_iso_string(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def _encode_json(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        # Ya viene serializado
        return value
    return json.dumps(value, default=str, ensure_ascii=False)


def _encode_bool(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    if isinstance(value, str):
        return "true" if value.strip().lower() in ("true", "1", "yes") else "false"
    return "true" if bool(value) else "false"


def _encode_int(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(int(float(value)))


def _decode_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(raw)


def _decode_datetime(raw: str) -> Any:
    parsed = DateTimeUtils.from_iso_string(raw)
    if parsed is None:
        raise ValueError(raw)
    return parsed


def _identity(raw: str) -> str:
    return raw


TEXT_CODEC = FieldCodec(encode=encode_value, decode=_identity)
JSON_CODEC = FieldCodec(encode=_encode_json, decode=json.loads)

FIELD_CODECS: Dict[str, FieldCodec] = {
    "single_line_text_field": TEXT_CODEC,
    "multi_line_text_field": TEXT_CODEC,
    "url": TEXT_CODEC,
    "color": TEXT_CODEC,
    "json": JSON_CODEC,
    "rich_text_field": JSON_CODEC,
    "link": JSON_CODEC,
    "boolean": FieldCodec(encode=_encode_bool, decode=_decode_bool),
    "number_integer": FieldCodec(encode=_encode_int, decode=int),
    "number_decimal": FieldCodec(encode=encode_value, decode=float),
    "date": FieldCodec(encode=encode_value, decode=_identity),
    "date_time": FieldCodec(encode=encode_value, decode=_decode_datetime),
}


def codec_for(type_tag: Optional[str]) -> FieldCodec:
    """
    Codec para un tipo declarado.
    list.* se guarda como JSON; *_reference y tipos desconocidos como texto.
    """
    if not type_tag:
        return TEXT_CODEC
    codec = FIELD_CODECS.get(type_tag)
    if codec is not None:
        return codec
    if type_tag.startswith("list."):
        return JSON_CODEC
    return TEXT_CODEC


def encode_field(value: Any, type_tag: Optional[str] = None) -> Optional[str]:
    return codec_for(type_tag).encode(value)


def decode_field(raw: Optional[str], type_tag: Optional[str] = None) -> Any:
    """Decodifica según el tipo; ante cualquier fallo devuelve el valor crudo."""
    if raw is None:
        return None
    try:
        return codec_for(type_tag).decode(raw)
    except (ValueError, TypeError):
        return raw


def encode_fields(fields: Dict[str, Any], type_lookup: Optional[Callable[[str], Optional[str]]] = None) -> list[dict[str, str]]:
    """
    Payload `fields` para create/update: [{"key", "value"}].
    Omite None/NaN; nunca envía null explícito.
    """
    encoded = []
    for key, value in fields.items():
        type_tag = type_lookup(key) if type_lookup else None
        text = encode_field(value, type_tag)
        if text is None:
            continue
        encoded.append({"key": key, "value": text})
    return encoded
