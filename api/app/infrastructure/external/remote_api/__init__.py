"""
Integración con la API remota: cliente GraphQL, política de reintentos
y helpers de identificadores.
"""
from .client import GraphQLRemoteAPI, RemoteAPI
from .retry import RetryPolicy, is_transient_error

__all__ = ["GraphQLRemoteAPI", "RemoteAPI", "RetryPolicy", "is_transient_error"]
