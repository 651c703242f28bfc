"""Translate workflow result dicts into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

_STATUS_BY_ERROR_TYPE = {
    "validation": 400,
    "not_found": 404,
    "conflict": 409,
    "gateway": 502,
}


def unwrap(result: dict) -> dict:
    """Return a successful result as-is, raise HTTPException otherwise."""
    if result["success"]:
        return result
    status = _STATUS_BY_ERROR_TYPE.get(result.get("error_type"), 500)
    detail = jsonable_encoder({k: v for k, v in result.items() if k != "success"})
    raise HTTPException(status, detail)
