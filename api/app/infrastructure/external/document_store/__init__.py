"""
Almacén de documentos tipados accedido via la API remota.
"""
from .handles import build_handle, slugify
from .store import DocumentStore

__all__ = ["DocumentStore", "build_handle", "slugify"]
