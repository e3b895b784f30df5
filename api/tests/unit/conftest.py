"""
Fixtures compartidas de los tests unitarios.

FakeRemoteAPI simula la API remota GraphQL en memoria:
- despacha por nombre de operacion (`query Nombre` / `mutation Nombre`)
- implementa las operaciones del almacen de documentos
- registra cada llamada para poder verificar el orden y los payloads
"""
from __future__ import annotations

import itertools
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from app.core.config import Settings
from app.infrastructure.external.document_store.store import DocumentStore
from app.infrastructure.external.remote_api.retry import RetryPolicy


_OPERATION_NAME = re.compile(r"(query|mutation)\s+(\w+)")
_HANDLE_QUERY = re.compile(r'handle:"([^"]*)"')

Handler = Callable[[Dict[str, Any]], Any]


class FakeRemoteAPI:
    """Doble en memoria de la API remota."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.handlers: Dict[str, Handler] = {}
        self.definitions: Dict[str, Dict[str, Any]] = {}
        self.metaobjects: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

        self.on("AccessCheck", {"shop": {"name": "Test Shop"}})
        self.on("MetaobjectDefinitionByType", self._definition_by_type)
        self.on("CreateMetaobjectDefinition", self._create_definition)
        self.on("CreateMetaobject", self._create_metaobject)
        self.on("UpdateMetaobject", self._update_metaobject)
        self.on("FindMetaobjectByHandle", self._find_by_handle)
        self.on("ListMetaobjects", self._list_metaobjects)
        self.on("CountMetaobjects", self._count_metaobjects)

    # ------------------------------------------------------------------
    # API publica del doble
    # ------------------------------------------------------------------

    async def query(self, operation: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        match = _OPERATION_NAME.search(operation)
        name = match.group(2) if match else "anonymous"
        variables = variables or {}
        self.calls.append((name, variables))
        handler = self.handlers.get(name)
        if handler is None:
            raise AssertionError(f"Operacion no esperada: {name}")
        result = handler(variables)
        if isinstance(result, BaseException):
            raise result
        return result

    def on(self, name: str, response: Any) -> None:
        """Registra la respuesta de una operacion (valor fijo o callable)."""
        self.handlers[name] = response if callable(response) else (lambda _v, r=response: r)

    def on_sequence(self, name: str, responses: List[Any]) -> None:
        """Respuestas consecutivas; la ultima se repite."""
        pending = list(responses)

        def handler(_variables: Dict[str, Any]) -> Any:
            return pending.pop(0) if len(pending) > 1 else pending[0]

        self.handlers[name] = handler

    def calls_to(self, name: str) -> List[Dict[str, Any]]:
        return [v for n, v in self.calls if n == name]

    def call_names(self) -> List[str]:
        return [n for n, _ in self.calls]

    def documents(self, doc_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.metaobjects.values() if m["type"] == doc_type]

    def document_fields(self, doc_type: str, handle: str) -> Dict[str, str]:
        for node in self.documents(doc_type):
            if node["handle"] == handle:
                return {f["key"]: f["value"] for f in node["fields"]}
        raise KeyError(handle)

    # ------------------------------------------------------------------
    # Almacen de documentos simulado
    # ------------------------------------------------------------------

    def _field_type(self, doc_type: str, key: str) -> str:
        definition = self.definitions.get(doc_type) or {}
        for f in definition.get("fieldDefinitions", []):
            if f["key"] == key:
                return f["type"]["name"]
        return "single_line_text_field"

    def _definition_by_type(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        return {"metaobjectDefinitionByType": self.definitions.get(variables["type"])}

    def _create_definition(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        definition = variables["definition"]
        node = {
            "id": f"gid://shopify/MetaobjectDefinition/{next(self._ids)}",
            "type": definition["type"],
            "name": definition["name"],
            "fieldDefinitions": [
                {"key": f["key"], "name": f["name"], "type": {"name": f["type"]}}
                for f in definition["fieldDefinitions"]
            ],
        }
        self.definitions[definition["type"]] = node
        return {
            "metaobjectDefinitionCreate": {
                "metaobjectDefinition": {"id": node["id"], "type": node["type"]},
                "userErrors": [],
            }
        }

    def _create_metaobject(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        metaobject = variables["metaobject"]
        doc_type = metaobject["type"]
        number = next(self._ids)
        handle = metaobject.get("handle") or f"{doc_type}-{number}"
        if any(m["handle"] == handle for m in self.documents(doc_type)):
            return {
                "metaobjectCreate": {
                    "metaobject": None,
                    "userErrors": [{"field": ["handle"], "message": "Handle has already been taken"}],
                }
            }
        node = {
            "id": f"gid://shopify/Metaobject/{number}",
            "type": doc_type,
            "handle": handle,
            "updatedAt": "2025-01-01T00:00:00Z",
            "capabilities": metaobject.get("capabilities"),
            "fields": [
                {"key": f["key"], "value": f["value"], "type": self._field_type(doc_type, f["key"])}
                for f in metaobject["fields"]
            ],
        }
        self.metaobjects[node["id"]] = node
        return {"metaobjectCreate": {"metaobject": node, "userErrors": []}}

    def _update_metaobject(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        node = self.metaobjects[variables["id"]]
        current = {f["key"]: f for f in node["fields"]}
        for f in variables["metaobject"]["fields"]:
            current[f["key"]] = {"key": f["key"], "value": f["value"], "type": self._field_type(node["type"], f["key"])}
        node["fields"] = list(current.values())
        return {"metaobjectUpdate": {"metaobject": node, "userErrors": []}}

    def _find_by_handle(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        match = _HANDLE_QUERY.search(variables.get("query", ""))
        handle = match.group(1) if match else None
        found = [m for m in self.documents(variables["type"]) if m["handle"] == handle]
        return {"metaobjects": {"nodes": found[:1]}}

    def _list_metaobjects(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        documents = list(reversed(self.documents(variables["type"])))
        start = int(variables.get("after") or 0)
        end = start + int(variables["first"])
        return {
            "metaobjects": {
                "nodes": documents[start:end],
                "pageInfo": {
                    "hasNextPage": end < len(documents),
                    "endCursor": str(end) if end < len(documents) else None,
                },
            }
        }

    def _count_metaobjects(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        return {"metaobjectDefinitionByType": {"metaobjectsCount": len(self.documents(variables["type"]))}}


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def fake_remote() -> FakeRemoteAPI:
    return FakeRemoteAPI()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Politica de reintentos sin esperas reales."""
    return RetryPolicy(max_attempts=3, base_delay_s=0.0, jitter=0.0, sleep=_no_sleep)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        REMOTE_API_URL="test-shop.example.com",
        REMOTE_API_TOKEN="test-token",
        IMPORT_BATCH_SIZE=2,
        IMPORT_DELAY_BETWEEN_BATCHES_SECONDS=0.0,
        IMPORT_CONCURRENCY_LIMIT=2,
        IMPORT_RESULT_DETAIL_LIMIT=10,
    )


@pytest.fixture
def store(fake_remote: FakeRemoteAPI, fast_retry: RetryPolicy) -> DocumentStore:
    return DocumentStore(fake_remote, fast_retry)
