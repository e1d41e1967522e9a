"""
asgi.py -- ASGI entry point for authstarter.

The API layer owns every route, so this module only re-exports the assembled
app for the server process.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
