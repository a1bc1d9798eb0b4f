"""
FastAPI REST API for chunking and retrieval.

Endpoints:
    GET  /health                               - Health check
    POST /articles/{article_id}/chunks         - Ensure an article's chunks
    POST /chunks/rebuild                       - Bulk (re-)chunking with per-article report
    POST /articles/{article_id}/relevant-chunks - Most relevant chunks for a question
"""

from newsrag.api.main import app, create_app

__all__ = ["app", "create_app"]
