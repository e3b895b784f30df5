"""
Configuración central de la aplicación.
Gestiona variables de entorno y configuraciones globales.
Soporta configuración dinámica para desarrollo (ENVIRONMENT=development)
y producción (ENVIRONMENT=production).
"""
import json
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, computed_field


class Settings(BaseSettings):
    """
    Clase de configuración de la aplicación.
    Lee variables de entorno y proporciona valores por defecto.

    Grupos de configuración:
    - Aplicación y servidor HTTP
    - API remota (tienda destino de la sincronización)
    - Motor de importación (reintentos, lotes, concurrencia)
    - Reglas por defecto de descuentos
    - Logging
    """

    # Configuración de la aplicación
    APP_NAME: str = Field(default="Bulk Sync Backend")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Configuración del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # API remota
    REMOTE_API_URL: str = Field(default="")
    REMOTE_API_VERSION: str = Field(default="2024-10")
    REMOTE_API_TOKEN: str = Field(default="")
    REMOTE_API_TOKEN_HEADER: str = Field(default="X-Shopify-Access-Token")
    REMOTE_API_TIMEOUT_SECONDS: float = Field(default=30.0)
    REMOTE_GID_PREFIX: str = Field(default="gid://shopify")

    # Motor de importación
    IMPORT_MAX_RETRIES: int = Field(default=3)
    IMPORT_RETRY_DELAY_SECONDS: float = Field(default=1.0)
    IMPORT_RETRY_MAX_DELAY_SECONDS: float = Field(default=20.0)
    IMPORT_RETRY_STRATEGY: str = Field(default="exponential")
    IMPORT_BATCH_SIZE: int = Field(default=5)
    IMPORT_DELAY_BETWEEN_BATCHES_SECONDS: float = Field(default=1.0)
    IMPORT_CONCURRENCY_LIMIT: int = Field(default=5)
    # Solo los primeros N éxitos guardan mensaje detallado en el job
    IMPORT_RESULT_DETAIL_LIMIT: int = Field(default=10)

    # Descuentos
    DEFAULT_PERCENTAGE_DISCOUNT: float = Field(default=15)
    DEFAULT_BXGY_DISCOUNT: float = Field(default=100)
    DISCOUNT_CODE_MAX_ATTEMPTS: int = Field(default=10)
    CODE_RETRY_THRESHOLD_1: int = Field(default=3)
    CODE_RETRY_THRESHOLD_2: int = Field(default=6)

    # Empresas
    COMPANY_EMAIL_MAX_ATTEMPTS: int = Field(default=3)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    @computed_field
    @property
    def remote_graphql_url(self) -> str:
        """
        Retorna la URL del endpoint GraphQL de la API remota.
        Acepta REMOTE_API_URL con o sin esquema y con o sin barra final.
        """
        base = self.REMOTE_API_URL.strip().rstrip("/")
        if base and not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base}/admin/api/{self.REMOTE_API_VERSION}/graphql.json"

    @computed_field
    @property
    def is_development(self) -> bool:
        """Indica si el entorno es de desarrollo."""
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        """Configuración de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuración de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON válido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuración
settings = Settings()
