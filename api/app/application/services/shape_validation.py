"""
Validación de forma de un archivo de importación.

Se ejecuta antes de crear el job y sin llamadas remotas: si las columnas
coinciden con la firma de otra familia de entidades, se rechaza con un
mensaje que indica la página de importación correcta.
"""

from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Sequence, Set, Tuple

from loguru import logger

from app.shared.constants.import_constants import EntityType
from app.shared.exceptions.domain import (
    InvalidImportFileException,
    UnsupportedEntityTypeException,
    ValidationException,
)
from app.shared.utils.value_parsing import normalize_key


# familia -> (columnas distintivas, coincidencias minimas)
SIGNATURES: Dict[str, Tuple[FrozenSet[str], int]] = {
    EntityType.COLLECTIONS.value: (frozenset({"collection_type", "relation_type", "rule_set"}), 2),
    EntityType.DISCOUNTS.value: (
        frozenset({
            "discount_type", "buy_quantity", "get_quantity",
            "get_discount", "usage_limit", "minimum_requirement_type",
        }),
        2,
    ),
    EntityType.COMPANIES.value: (
        frozenset({
            "company_id", "location_id", "location_name",
            "shipping_street", "shipping_city", "contact_email",
        }),
        2,
    ),
    EntityType.DOCUMENTS.value: (frozenset({"metaobject_type", "definition_type"}), 1),
}

# Al menos una columna de cada grupo
REQUIRED_COLUMNS: Dict[str, List[FrozenSet[str]]] = {
    EntityType.DISCOUNTS.value: [frozenset({"title", "discount_type"})],
    EntityType.COLLECTIONS.value: [frozenset({"title"})],
    EntityType.COMPANIES.value: [frozenset({"company_id", "name", "company_name"})],
    EntityType.DOCUMENTS.value: [],
}

_LABELS = {
    EntityType.COLLECTIONS.value: "collection",
    EntityType.DISCOUNTS.value: "discount",
    EntityType.COMPANIES.value: "company",
    EntityType.DOCUMENTS.value: "metaobject",
}


def collect_headers(records: Iterable[Mapping[str, Any]]) -> Set[str]:
    headers: Set[str] = set()
    for record in records:
        headers.update(normalize_key(k) for k in record.keys())
    return headers


def detect_entity_type(headers: Set[str], expected: str) -> str | None:
    """Familia distinta de `expected` cuya firma coincide con las columnas."""
    for entity_type, (columns, threshold) in SIGNATURES.items():
        if entity_type == expected:
            continue
        if len(headers & columns) >= threshold:
            return entity_type
    return None


def validate_shape(entity_type: str, records: Sequence[Mapping[str, Any]]) -> None:
    """
    Valida que los registros correspondan a la familia indicada.

    Args:
        entity_type: Familia destino del import
        records: Registros parseados del archivo

    Raises:
        UnsupportedEntityTypeException: Si la familia no existe
        ValidationException: Si no hay registros o faltan columnas obligatorias
        InvalidImportFileException: Si el archivo pertenece a otra familia
    """
    if entity_type not in SIGNATURES:
        raise UnsupportedEntityTypeException(entity_type, sorted(SIGNATURES))
    if not records:
        raise ValidationException("El archivo esta vacio o no tiene filas validas", field="records")

    headers = collect_headers(records)
    detected = detect_entity_type(headers, entity_type)
    if detected is not None:
        label = _LABELS[detected]
        logger.warning(f"[import] Archivo de tipo '{label}' enviado a la importacion de {entity_type}")
        raise InvalidImportFileException(
            expected_type=entity_type,
            detected_type=detected,
            message=(
                f"This appears to be a {label} file. Please use the "
                f"{detected.capitalize()} import page to import {label} data."
            ),
        )

    for group in REQUIRED_COLUMNS[entity_type]:
        if not headers & group:
            columns = " or ".join(f'"{c}"' for c in sorted(group))
            raise ValidationException(
                f"Invalid {_LABELS[entity_type]} file. The CSV must include a {columns} column.",
                field=sorted(group)[0],
            )
