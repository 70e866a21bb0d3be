"""
ASGI entry point for ``uvicorn app.main:app`` (full profile).

The server loop builds its own app through ``app.factory.create_app`` and
never imports this module.
"""
from app.factory import create_app

app = create_app()
