# medcrm/actions/base.py
"""
Shared plumbing for action functions.

An action takes the database session first and the caller's user id second.
Inside, it raises ``ActionError`` subclasses freely; the ``@action`` decorator
is the one place those become ``{"success": False, "error": message}``.
"""
import functools
import math
from typing import Any, Dict, Tuple

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from medcrm.errors import ActionError, Conflict, ValidationFailed

logger = structlog.get_logger(__name__)

UNKNOWN_ERROR = "Unknown error"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def success(**payload) -> Dict[str, Any]:
    return {"success": True, **payload}


def failure(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


def action(func):
    """Convert raised ActionErrors into failure results after rolling back."""

    @functools.wraps(func)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return func(db, *args, **kwargs)
        except ActionError as exc:
            db.rollback()
            logger.info(
                "action_failed",
                action=func.__name__,
                kind=type(exc).__name__,
                error=exc.message,
            )
            return failure(exc.message)
        except Exception:
            db.rollback()
            logger.exception("action_crashed", action=func.__name__)
            return failure(UNKNOWN_ERROR)

    return wrapper


def as_dict(data, exclude_unset: bool = False) -> Dict[str, Any]:
    """Accept either a pydantic model or a plain mapping as action input."""
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=exclude_unset)
    return dict(data)


def load(schema, data, exclude_unset: bool = False) -> Dict[str, Any]:
    """Validate action input against a request schema and return it as a dict."""
    if not isinstance(data, schema):
        try:
            data = schema.model_validate(as_dict(data))
        except ValidationError as exc:
            error = exc.errors()[0]
            field = ".".join(str(part) for part in error["loc"])
            raise ValidationFailed(f"{field}: {error['msg']}" if field else error["msg"])
    return data.model_dump(exclude_unset=exclude_unset)


def dump(schema, obj, **extra) -> Dict[str, Any]:
    """Serialize an ORM row through a response schema, merging in extra fields."""
    payload = schema.model_validate(obj).model_dump()
    payload.update(extra)
    return payload


def commit(db: Session, conflict_message: str = None) -> None:
    """Commit, turning unique-constraint violations into Conflict when a message is given."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if conflict_message is None:
            raise
        raise Conflict(conflict_message)


def paginate(query: Query, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Tuple[list, Dict[str, int]]:
    page = max(int(page or 1), 1)
    limit = min(max(int(limit or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()

    total_pages = math.ceil(total / limit) if total else 0

    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def like(term: str) -> str:
    return f"%{term.strip()}%"
