"""ASGI entry point: ``uvicorn evogate.api.app:app``."""

from .factory import create_app

app = create_app()
