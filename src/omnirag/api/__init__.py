"""
FastAPI REST API for omnirag.

Endpoints:
    GET /health - Health check with index size and routing mode
    POST /search - Scoped substring search over indexed chunks
    POST /chat - Answer a message from files and the library
    GET /projects - List projects
    POST /projects/{id}/activate - Activate a project
"""

from omnirag.api.main import app, create_app

__all__ = ["app", "create_app"]
