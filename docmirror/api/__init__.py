"""FastAPI HTTP layer package.

Public re-export so callers can write::

    from docmirror.api import app

    uvicorn docmirror.api:app --reload
"""

from docmirror.api.app import app

__all__ = ["app"]
