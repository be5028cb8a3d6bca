"""
Response helpers shared by the route modules.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from fastapi import Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from imob_api.services.common import MAX_LIMIT, Pagination


def serialize(record: Any, exclude: Iterable[str] = ()) -> Any:
    data = jsonable_encoder(record)
    if isinstance(data, dict):
        for key in exclude:
            data.pop(key, None)
    return data


def ok(data: Any = None, *, exclude: Iterable[str] = (), **extra) -> dict:
    """The `{"success": true, "data": ...}` envelope; lists also carry `count`."""
    exclude = tuple(exclude)
    if isinstance(data, list):
        body = {"success": True, "data": [serialize(item, exclude) for item in data]}
        body["count"] = len(data)
    else:
        body = {"success": True, "data": serialize(data, exclude)}
    body.update(extra)
    return body


def message(text: str, **extra) -> dict:
    return {"success": True, "message": text, **extra}


def payload(model: BaseModel) -> dict:
    return model.model_dump(exclude_unset=True)


def pagination(
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIMIT),
    offset: Optional[int] = Query(None, ge=0),
) -> Optional[Pagination]:
    """None when the caller did not page, so each listing keeps its own default order."""
    if limit is None and offset is None:
        return None
    page = Pagination(limit=limit or 0, offset=offset or 0)
    return page
