"""
Tests del almacen de documentos sobre el doble de la API remota.
"""
import pytest

from app.infrastructure.external.document_store.definitions import COLLECTION_DEFINITION
from app.shared.exceptions.remote import PreconditionFailedError, RemoteValidationError


class TestEnsureSchema:

    @pytest.mark.asyncio
    async def test_creates_definition_once(self, store, fake_remote):
        await store.ensure_schema(COLLECTION_DEFINITION)
        await store.ensure_schema(COLLECTION_DEFINITION)

        assert len(fake_remote.calls_to("CreateMetaobjectDefinition")) == 1
        assert "app_collection" in fake_remote.definitions

    @pytest.mark.asyncio
    async def test_existing_definition_is_not_recreated(self, store, fake_remote):
        fake_remote.definitions["app_collection"] = {
            "id": "gid://shopify/MetaobjectDefinition/99",
            "type": "app_collection",
            "name": "App Collection",
            "fieldDefinitions": [],
        }

        await store.ensure_schema(COLLECTION_DEFINITION)

        assert fake_remote.calls_to("CreateMetaobjectDefinition") == []

    @pytest.mark.asyncio
    async def test_creation_error_is_precondition_failure(self, store, fake_remote):
        fake_remote.on(
            "CreateMetaobjectDefinition",
            {"metaobjectDefinitionCreate": {"userErrors": [{"message": "Access denied"}]}},
        )

        with pytest.raises(PreconditionFailedError) as exc_info:
            await store.ensure_schema(COLLECTION_DEFINITION)
        assert "Access denied" in exc_info.value.message


class TestWrites:

    @pytest.mark.asyncio
    async def test_upsert_creates_then_updates(self, store, fake_remote):
        await store.ensure_schema(COLLECTION_DEFINITION)

        first, created = await store.upsert(
            "app_collection", "col-verano", {"title": "Verano"}, create_fields={"shopify_id": "1"}
        )
        second, created_again = await store.upsert("app_collection", "col-verano", {"title": "Verano 2"})

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert len(fake_remote.documents("app_collection")) == 1
        assert fake_remote.document_fields("app_collection", "col-verano") == {
            "title": "Verano 2",
            "shopify_id": "1",
        }

    @pytest.mark.asyncio
    async def test_none_fields_are_not_sent(self, store, fake_remote):
        await store.create("app_collection", {"title": "Otono", "description": None}, handle="col-otono")

        sent = fake_remote.calls_to("CreateMetaobject")[0]["metaobject"]["fields"]
        assert sent == [{"key": "title", "value": "Otono"}]

    @pytest.mark.asyncio
    async def test_json_fields_are_encoded(self, store, fake_remote):
        await store.create("app_collection", {"product_ids": ["1", "2"]}, handle="col-json")

        assert fake_remote.document_fields("app_collection", "col-json") == {"product_ids": '["1", "2"]'}

    @pytest.mark.asyncio
    async def test_create_with_status_sets_capability(self, store, fake_remote):
        await store.create("faq", {"question": "Hola"}, status="DRAFT")

        metaobject = fake_remote.calls_to("CreateMetaobject")[0]["metaobject"]
        assert metaobject["capabilities"] == {"publishable": {"status": "DRAFT"}}
        assert "handle" not in metaobject

    @pytest.mark.asyncio
    async def test_user_errors_raise_validation_error(self, store):
        await store.create("app_collection", {"title": "A"}, handle="col-a")

        with pytest.raises(RemoteValidationError) as exc_info:
            await store.create("app_collection", {"title": "B"}, handle="col-a")
        assert "already been taken" in exc_info.value.message


class TestReads:

    @pytest.mark.asyncio
    async def test_get_definition_missing_returns_none(self, store):
        assert await store.get_definition("no_existe") is None

    @pytest.mark.asyncio
    async def test_get_by_handle_decodes_declared_types(self, store):
        await store.ensure_schema(COLLECTION_DEFINITION)
        await store.create("app_collection", {"title": "T", "product_ids": ["7"]}, handle="col-t")

        document = await store.get_by_handle("app_collection", "col-t")

        assert document is not None
        assert document.fields == {"title": "T", "product_ids": ["7"]}
        assert await store.get_by_handle("app_collection", "col-otra") is None

    @pytest.mark.asyncio
    async def test_list_pages_and_count(self, store):
        for n in range(5):
            await store.create("app_collection", {"title": f"T{n}"}, handle=f"col-{n}")

        page = await store.list("app_collection", page_size=2)
        everything = await store.list_all("app_collection", page_size=2)

        assert len(page.documents) == 2
        assert page.page_info.has_next_page is True
        # Orden: mas recientes primero
        assert page.documents[0].handle == "col-4"
        assert [d.handle for d in everything] == [f"col-{n}" for n in (4, 3, 2, 1, 0)]
        assert await store.count("app_collection") == 5
