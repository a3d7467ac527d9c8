from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder


def ok(
    data: Any = None,
    *,
    message: Optional[str] = None,
    pagination: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Success envelope shared by every token route.
    """
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body["data"] = jsonable_encoder(data)
    if pagination is not None:
        body["pagination"] = pagination
    return body
