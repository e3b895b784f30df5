"""
Tests de la validacion de forma de archivos de importacion.
"""
import pytest

from app.application.services.shape_validation import detect_entity_type, validate_shape
from app.shared.exceptions.domain import (
    InvalidImportFileException,
    UnsupportedEntityTypeException,
    ValidationException,
)


DISCOUNT_ROWS = [
    {"Title": "Verano", "Discount Type": "percentage", "Value": "15", "Usage Limit": "100"},
]
COLLECTION_ROWS = [
    {"title": "Ofertas", "collection_type": "smart", "relation_type": "equals", "condition": "sale"},
]
COMPANY_ROWS = [
    {"company_id": "C-1", "name": "ACME", "location_id": "L-1", "shipping_city": "Lima"},
]


class TestValidateShape:

    def test_discount_file_rejected_on_collections_page(self):
        with pytest.raises(InvalidImportFileException) as exc_info:
            validate_shape("collections", DISCOUNT_ROWS)

        exc = exc_info.value
        assert exc.detected_type == "discounts"
        assert exc.error_code == "INVALID_FILE_TYPE"
        assert "discount" in exc.message
        assert "Discounts import page" in exc.message

    def test_collection_file_rejected_on_discounts_page(self):
        with pytest.raises(InvalidImportFileException) as exc_info:
            validate_shape("discounts", COLLECTION_ROWS)
        assert exc_info.value.detected_type == "collections"

    def test_company_file_rejected_on_collections_page(self):
        with pytest.raises(InvalidImportFileException) as exc_info:
            validate_shape("collections", COMPANY_ROWS)
        assert exc_info.value.detected_type == "companies"

    def test_metaobject_column_points_to_documents(self):
        rows = [{"title": "Pregunta", "metaobject_type": "faq"}]
        with pytest.raises(InvalidImportFileException) as exc_info:
            validate_shape("collections", rows)
        assert exc_info.value.detected_type == "documents"

    @pytest.mark.parametrize(
        "entity_type, rows",
        [
            ("discounts", DISCOUNT_ROWS),
            ("collections", COLLECTION_ROWS),
            ("companies", COMPANY_ROWS),
            ("documents", [{"question": "Hola", "answer": "Mundo"}]),
        ],
    )
    def test_matching_files_pass(self, entity_type, rows):
        validate_shape(entity_type, rows)

    def test_missing_required_column(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_shape("collections", [{"name": "Sin titulo"}])
        assert '"title"' in exc_info.value.message

    def test_empty_records(self):
        with pytest.raises(ValidationException):
            validate_shape("discounts", [])

    def test_unknown_entity_type(self):
        with pytest.raises(UnsupportedEntityTypeException):
            validate_shape("products", DISCOUNT_ROWS)


def test_single_overlapping_column_is_not_a_mismatch():
    # Un solo campo en comun no alcanza el umbral de la firma
    assert detect_entity_type({"title", "usage_limit"}, "collections") is None
