"""Workflow error taxonomy and the uniform ``{"success": ...}`` result shape.

Every public workflow operation returns a plain dict. Expected failures are
raised internally as ``WorkflowError`` subclasses and turned into
``{"success": False, "error": ..., "error_type": ...}`` by
``workflow_operation``; nothing escapes to the caller.
"""

from __future__ import annotations

import functools
import logging

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    error_type = "workflow"

    def __init__(self, message: str, **data):
        super().__init__(message)
        self.message = message
        self.data = data


class ValidationError(WorkflowError):
    """A precondition policy refused the operation."""
    error_type = "validation"


class NotFoundError(ValidationError):
    error_type = "not_found"


class ConflictError(WorkflowError):
    """The record was already resolved by an earlier (or concurrent) call."""
    error_type = "conflict"


class GatewayError(WorkflowError):
    """The payment processor rejected the request or could not be reached."""
    error_type = "gateway"

    def __init__(self, message: str, status_code: int | None = None, **data):
        super().__init__(message, **data)
        self.status_code = status_code


def ok(**data) -> dict:
    return {"success": True, **data}


def failure(error: str, error_type: str = "unexpected", **data) -> dict:
    return {"success": False, "error": error, "error_type": error_type, **data}


def workflow_operation(default_error: str):
    """Decorator: normalize errors of an ``async def op(db, ...)`` into result dicts.

    The session is rolled back on any failure so staged writes never leak
    into a later commit.
    """
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(db: AsyncSession, *args, **kwargs) -> dict:
            try:
                return await fn(db, *args, **kwargs)
            except WorkflowError as exc:
                await db.rollback()
                log = logger.warning if isinstance(exc, GatewayError) else logger.info
                log("%s refused: %s", fn.__name__, exc.message)
                return failure(exc.message, exc.error_type, **exc.data)
            except Exception:
                logger.exception("%s failed unexpectedly", fn.__name__)
                await db.rollback()
                return failure(default_error)
        return wrapper
    return decorator
