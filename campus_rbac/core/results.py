"""Structured results for mutation operations.

Services raise typed errors internally; ``as_result`` turns them into an
``OperationResult`` so route handlers can map codes to HTTP statuses
without catching anything.
"""

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_rbac.core.exceptions import CampusRBACError

logger = logging.getLogger("campus_rbac")


@dataclass
class OperationResult:
    success: bool
    message: str
    code: Optional[str] = None
    data: Any = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, code: str) -> "OperationResult":
        return cls(success=False, message=message, code=code)


def as_result(failure_code: str, success_message: str, failure_message: Optional[str] = None) -> Callable:
    """Wrap a ``(db, ...)`` service function so it returns an OperationResult.

    Typed errors keep their own code. Store errors are reported under
    ``failure_code``; the raw driver message is logged, not returned.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(db: Session, *args, **kwargs) -> OperationResult:
            try:
                data = func(db, *args, **kwargs)
            except CampusRBACError as exc:
                db.rollback()
                logger.info("%s rejected: [%s] %s", func.__name__, exc.code, exc.message)
                return OperationResult.fail(exc.message, exc.code)
            except SQLAlchemyError:
                db.rollback()
                logger.exception("%s failed against the store", func.__name__)
                return OperationResult.fail(
                    failure_message or f"{func.__name__} failed", failure_code,
                )
            return OperationResult.ok(success_message, data)

        return wrapper

    return decorator
