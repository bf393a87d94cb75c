"""
Success envelopes shared by all resource routes.

    {"status": "success", "data": {...}}
    {"status": "success", "results": 3, "page": 1, "data": {"tours": [...]}}
    {"status": "success", "token": "...", "data": {"user": {...}}}

Error envelopes are produced by tours_api/error_handlers.py.
"""

from typing import Any, Dict, Iterable, Optional

from tours_api.db.documents import serialize_document


def success(**data: Any) -> Dict[str, Any]:
    return {"status": "success", "data": data}


def document(name: str, doc: Optional[Dict[str, Any]], token: Optional[str] = None) -> Dict[str, Any]:
    """Envelope for a single stored document, optionally with a login token."""
    body: Dict[str, Any] = {"status": "success"}
    if token is not None:
        body["token"] = token
    body["data"] = {name: serialize_document(doc)}
    return body


def listing(name: str, docs: Iterable[Dict[str, Any]], page: Optional[int] = None) -> Dict[str, Any]:
    items = [serialize_document(doc) for doc in docs]
    body: Dict[str, Any] = {"status": "success", "results": len(items)}
    if page is not None:
        body["page"] = page
    body["data"] = {name: items}
    return body
