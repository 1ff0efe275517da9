"""
JSON envelope shared by every endpoint.

Success: {"success": true, "data": ..., "pagination": {...}?}
Failure: {"success": false, "error": "..."}
"""

from __future__ import annotations

from typing import Any


def success(data: Any, *, pagination: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if pagination is not None:
        body["pagination"] = pagination
    return body


def failure(error: str, *, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": error}
    if details is not None:
        body["details"] = details
    return body
