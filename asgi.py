"""
asgi.py -- Application assembly for WordLists.

The ASGI entry point servers load. api/main.py builds the app and registers
every router; this module is the stable import path for uvicorn and process
managers so deployment config does not depend on the package layout.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app

__all__ = ["app"]
