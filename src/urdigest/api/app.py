"""ASGI entry point: ``uvicorn urdigest.api.app:app``."""

from .factory import create_app

app = create_app()
