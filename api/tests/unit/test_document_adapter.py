"""
Tests del adaptador generico de documentos tipados.
"""
import json

import pytest

from app.infrastructure.external.sync_adapters.documents import DocumentSyncAdapter
from app.shared.constants.import_constants import RecordAction, ResultStatus
from app.shared.exceptions.domain import ValidationException
from app.shared.exceptions.remote import PreconditionFailedError


FAQ_DEFINITION = {
    "id": "gid://shopify/MetaobjectDefinition/500",
    "type": "faq",
    "name": "FAQ",
    "fieldDefinitions": [
        {"key": "question", "name": "Question", "type": {"name": "single_line_text_field"}},
        {"key": "answer", "name": "Answer", "type": {"name": "rich_text_field"}},
        {"key": "related_product", "name": "Related Product", "type": {"name": "product_reference"}},
        {"key": "tags", "name": "Tags", "type": {"name": "list.single_line_text_field"}},
        {"key": "priority", "name": "Priority", "type": {"name": "number_integer"}},
        {"key": "image", "name": "Image", "type": {"name": "file_reference"}},
    ],
}


@pytest.fixture
def adapter(fake_remote, store, fast_retry, test_settings):
    fake_remote.definitions["faq"] = FAQ_DEFINITION
    fake_remote.on(
        "ProductByHandle",
        lambda v: {"productByHandle": {"id": "gid://shopify/Product/3"} if v["handle"] == "zapatilla" else None},
    )
    return DocumentSyncAdapter(fake_remote, store, fast_retry, test_settings, document_type="faq")


async def _process(adapter, records):
    await adapter.prepare()
    outcomes = []
    for unit in adapter.build_units(records):
        outcomes.extend([o async for o in adapter.process_unit(unit)])
    return outcomes


def test_document_type_is_required(fake_remote, store, fast_retry, test_settings):
    with pytest.raises(ValidationException):
        DocumentSyncAdapter(fake_remote, store, fast_retry, test_settings)


@pytest.mark.asyncio
async def test_missing_definition_fails_prepare(fake_remote, store, fast_retry, test_settings):
    adapter = DocumentSyncAdapter(fake_remote, store, fast_retry, test_settings, document_type="no_existe")

    with pytest.raises(PreconditionFailedError) as exc_info:
        await adapter.prepare()
    assert exc_info.value.message == "Metaobject definition not found: no_existe"


@pytest.mark.asyncio
async def test_fields_are_parsed_by_declared_type(adapter, fake_remote):
    outcomes = await _process(adapter, [{
        "Question": "Como devuelvo un producto?",
        "Answer": "Escribenos",
        "Related Product": "zapatilla",
        "Tags": "envios, devoluciones",
        "Priority": "2",
        "Columna Extra": "ignorada",
    }])

    assert outcomes[0].status == ResultStatus.SUCCESS
    assert outcomes[0].message == "Imported successfully"
    assert outcomes[0].action == RecordAction.CREATED

    node = fake_remote.documents("faq")[0]
    assert node["capabilities"] == {"publishable": {"status": "ACTIVE"}}
    fields = {f["key"]: f["value"] for f in node["fields"]}
    assert fields["question"] == "Como devuelvo un producto?"
    assert fields["related_product"] == "gid://shopify/Product/3"
    assert json.loads(fields["tags"]) == ["envios", "devoluciones"]
    assert fields["priority"] == "2"
    assert json.loads(fields["answer"])["children"][0]["children"][0]["value"] == "Escribenos"
    assert "columna_extra" not in fields


@pytest.mark.asyncio
async def test_references_are_resolved_once(adapter, fake_remote):
    await _process(adapter, [
        {"question": "A", "related_product": "zapatilla"},
        {"question": "B", "related_product": "zapatilla"},
    ])

    assert len(fake_remote.calls_to("ProductByHandle")) == 1


@pytest.mark.asyncio
async def test_unresolved_reference_and_file_are_warnings(adapter, fake_remote):
    outcomes = await _process(adapter, [{
        "question": "C",
        "related_product": "no-existe",
        "image": "foto.png",
    }])

    assert outcomes[0].status == ResultStatus.WARNING
    assert "referencia 'no-existe' no encontrada" in outcomes[0].message
    assert "no es un gid ni una URL de archivo" in outcomes[0].message
    fields = {f["key"] for f in fake_remote.documents("faq")[0]["fields"]}
    assert fields == {"question"}


@pytest.mark.asyncio
async def test_draft_status(adapter, fake_remote):
    await _process(adapter, [{"question": "D", "status": "draft"}])
    assert fake_remote.documents("faq")[0]["capabilities"] == {"publishable": {"status": "DRAFT"}}


@pytest.mark.asyncio
async def test_handle_upserts(adapter, fake_remote):
    first = await _process(adapter, [{"handle": "envios", "question": "v1"}])
    second = await _process(adapter, [{"handle": "envios", "question": "v2"}])

    assert first[0].created is True
    assert second[0].created is False
    assert fake_remote.document_fields("faq", "envios") == {"question": "v2"}


@pytest.mark.asyncio
async def test_record_without_known_fields_is_an_error(adapter, fake_remote):
    outcomes = await _process(adapter, [{"otra": "cosa"}])

    assert outcomes[0].status == ResultStatus.ERROR
    assert outcomes[0].message == "No valid fields found to import"
    assert fake_remote.documents("faq") == []


@pytest.mark.asyncio
async def test_reimport_without_handle_updates_the_same_document(adapter, fake_remote):
    first = await _process(adapter, [{"question": "Cuanto tarda el envio?", "priority": "1"}])
    second = await _process(adapter, [{"question": "Cuanto tarda el envio?", "priority": "3"}])

    assert first[0].created is True
    assert second[0].created is False
    assert len(fake_remote.documents("faq")) == 1
    assert fake_remote.document_fields("faq", "faq-cuanto-tarda-el-envio") == {
        "question": "Cuanto tarda el envio?",
        "priority": "3",
    }


@pytest.mark.asyncio
async def test_title_column_takes_precedence_for_the_derived_handle(adapter, fake_remote):
    await _process(adapter, [{"title": "Envios", "question": "Cuanto tarda?"}])

    assert fake_remote.documents("faq")[0]["handle"] == "faq-envios"


@pytest.mark.asyncio
async def test_derived_handle_keeps_draft_status(adapter, fake_remote):
    await _process(adapter, [{"question": "E", "status": "DRAFT"}])

    node = fake_remote.documents("faq")[0]
    assert node["handle"] == "faq-e"
    assert node["capabilities"] == {"publishable": {"status": "DRAFT"}}


@pytest.mark.asyncio
async def test_file_url_is_uploaded_once(adapter, fake_remote):
    fake_remote.on(
        "FileCreate",
        {"fileCreate": {"files": [{"id": "gid://shopify/MediaImage/9", "fileStatus": "UPLOADED"}], "userErrors": []}},
    )

    outcomes = await _process(adapter, [
        {"question": "F", "image": "https://cdn.example.com/foto.png"},
        {"question": "G", "image": "https://cdn.example.com/foto.png"},
    ])

    assert [o.status for o in outcomes] == [ResultStatus.SUCCESS, ResultStatus.SUCCESS]
    calls = fake_remote.calls_to("FileCreate")
    assert calls == [{"files": [{"originalSource": "https://cdn.example.com/foto.png"}]}]
    assert fake_remote.document_fields("faq", "faq-f")["image"] == "gid://shopify/MediaImage/9"


@pytest.mark.asyncio
async def test_rejected_file_upload_is_a_warning(adapter, fake_remote):
    fake_remote.on(
        "FileCreate",
        {"fileCreate": {"files": [], "userErrors": [{"field": ["files"], "message": "Invalid URL"}]}},
    )

    outcomes = await _process(adapter, [{"question": "H", "image": "http://cdn.example.com/rota.png"}])

    assert outcomes[0].status == ResultStatus.WARNING
    assert "no se pudo subir 'http://cdn.example.com/rota.png'" in outcomes[0].message
    assert "image" not in fake_remote.document_fields("faq", "faq-h")


@pytest.mark.asyncio
async def test_blog_reference_is_resolved_by_handle(fake_remote, store, fast_retry, test_settings):
    fake_remote.definitions["post"] = {
        "id": "gid://shopify/MetaobjectDefinition/501",
        "type": "post",
        "name": "Post",
        "fieldDefinitions": [
            {"key": "title", "name": "Title", "type": {"name": "single_line_text_field"}},
            {"key": "blog", "name": "Blog", "type": {"name": "blog_reference"}},
        ],
    }
    fake_remote.on("BlogByHandle", lambda v: {"blogByHandle": {"id": "gid://shopify/Blog/4"}})
    adapter = DocumentSyncAdapter(fake_remote, store, fast_retry, test_settings, document_type="post")

    await _process(adapter, [{"title": "Novedades", "blog": "noticias"}])

    assert fake_remote.calls_to("BlogByHandle") == [{"handle": "noticias"}]
    assert fake_remote.document_fields("post", "post-novedades")["blog"] == "gid://shopify/Blog/4"
