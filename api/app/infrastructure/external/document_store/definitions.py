"""
Esquemas de los documentos espejo por familia de entidades.

Cada familia persiste una copia desnormalizada del registro sincronizado,
enlazada al ID remoto. Las claves de campo se mantienen estables porque
los datos ya existentes en tiendas instaladas dependen de ellas.
"""

from __future__ import annotations

from app.domain.entities.document import DocumentDefinition, FieldDefinition


def _fields(*specs: tuple[str, str, str]) -> tuple[FieldDefinition, ...]:
    return tuple(FieldDefinition(key=k, name=n, type=t) for k, n, t in specs)


_TIMESTAMPS = (
    ("created_at", "Created At", "date_time"),
    ("updated_at", "Updated At", "date_time"),
)

COMPANY_DEFINITION = DocumentDefinition(
    type="app_company",
    name="App Company",
    field_definitions=_fields(
        ("company_id", "Company ID", "single_line_text_field"),
        ("name", "Name", "single_line_text_field"),
        ("contact_info", "Contact Info", "json"),
        ("location_id", "Location ID", "single_line_text_field"),
        ("location_name", "Location Name", "single_line_text_field"),
        ("shipping_address", "Shipping Address", "json"),
        ("billing_address", "Billing Address", "json"),
        ("catalogs", "Catalogs", "json"),
        ("payment_terms", "Payment Terms", "single_line_text_field"),
        ("no_payment_terms", "No Payment Terms", "boolean"),
        ("checkout_settings", "Checkout Settings", "json"),
        ("ship_to_any_address", "Ship To Any Address", "boolean"),
        ("auto_submit_orders", "Auto Submit Orders", "boolean"),
        ("submit_all_as_drafts", "Submit All As Drafts", "boolean"),
        ("tax_settings", "Tax Settings", "json"),
        ("tax_id", "Tax ID", "single_line_text_field"),
        ("collect_tax", "Collect Tax", "boolean"),
        ("markets", "Markets", "json"),
        ("shopify_customer_id", "Shopify Customer ID", "single_line_text_field"),
        ("external_system_id", "External System ID", "single_line_text_field"),
        ("stored_metafields", "Stored Metafields", "multi_line_text_field"),
        *_TIMESTAMPS,
    ),
)

COLLECTION_DEFINITION = DocumentDefinition(
    type="app_collection",
    name="App Collection",
    field_definitions=_fields(
        ("shopify_id", "Shopify ID", "single_line_text_field"),
        ("title", "Title", "single_line_text_field"),
        ("description", "Description", "multi_line_text_field"),
        ("collection_type", "Collection Type", "single_line_text_field"),
        ("collection_handle", "Collection Handle", "single_line_text_field"),
        ("seo_title", "SEO Title", "single_line_text_field"),
        ("meta_description", "Meta Description", "multi_line_text_field"),
        ("image_url", "Image URL", "url"),
        ("product_ids", "Product IDs", "json"),
        ("rule_set", "Rule Set", "json"),
        ("stored_metafields", "Stored Metafields", "multi_line_text_field"),
        *_TIMESTAMPS,
    ),
)

DISCOUNT_DEFINITION = DocumentDefinition(
    type="app_discount",
    name="App Discount",
    field_definitions=_fields(
        ("shopify_id", "Shopify ID", "single_line_text_field"),
        ("title", "Title", "single_line_text_field"),
        ("description", "Description", "multi_line_text_field"),
        ("discount_type", "Discount Type", "single_line_text_field"),
        ("value", "Value", "number_decimal"),
        ("code", "Code", "single_line_text_field"),
        ("buy_quantity", "Buy Quantity", "number_integer"),
        ("get_quantity", "Get Quantity", "number_integer"),
        ("get_discount", "Get Discount", "number_decimal"),
        ("applies_to", "Applies To", "single_line_text_field"),
        ("customer_eligibility", "Customer Eligibility", "single_line_text_field"),
        ("minimum_requirement_type", "Minimum Requirement Type", "single_line_text_field"),
        ("minimum_requirement_value", "Minimum Requirement Value", "number_decimal"),
        ("usage_limit", "Usage Limit", "number_integer"),
        ("one_per_customer", "One Per Customer", "boolean"),
        ("combines_with_product_discounts", "Combines With Product Discounts", "boolean"),
        ("combines_with_order_discounts", "Combines With Order Discounts", "boolean"),
        ("combines_with_shipping_discounts", "Combines With Shipping Discounts", "boolean"),
        ("starts_at", "Starts At", "date_time"),
        ("ends_at", "Ends At", "date_time"),
        ("product_ids", "Product IDs", "json"),
        ("collection_ids", "Collection IDs", "json"),
        ("status", "Status", "single_line_text_field"),
        *_TIMESTAMPS,
    ),
)

DEFINITIONS_BY_ENTITY = {
    "companies": COMPANY_DEFINITION,
    "collections": COLLECTION_DEFINITION,
    "discounts": DISCOUNT_DEFINITION,
}
