"""
Configuracion de fixtures para pytest.
"""
import os

# app.core.config lee el entorno al importarse
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REMOTE_API_URL", "test-shop.example.com")
os.environ.setdefault("REMOTE_API_TOKEN", "test-token")
