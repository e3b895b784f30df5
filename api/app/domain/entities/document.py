"""
Documentos tipados del almacén remoto.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class FieldDefinition:
    key: str
    name: str
    type: str


@dataclass(frozen=True)
class DocumentDefinition:
    """Esquema de un tipo de documento (nombre, tipo y campos)."""

    type: str
    name: str
    field_definitions: Tuple[FieldDefinition, ...] = ()
    id: Optional[str] = None

    def field_type(self, key: str) -> Optional[str]:
        for definition in self.field_definitions:
            if definition.key == key:
                return definition.type
        return None

    @property
    def field_keys(self) -> List[str]:
        return [f.key for f in self.field_definitions]


@dataclass(frozen=True)
class Document:
    """
    Documento remoto direccionado por type + handle.
    fields contiene valores ya decodificados según el tipo declarado.
    """

    id: str
    type: str
    handle: Optional[str]
    fields: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def as_row(self) -> Dict[str, Any]:
        """Vista plana para tablas y exportación."""
        return {"id": self.id, "handle": self.handle, "updated_at": self.updated_at, **self.fields}


@dataclass(frozen=True)
class PageInfo:
    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass(frozen=True)
class DocumentPage:
    documents: List[Document]
    page_info: PageInfo
