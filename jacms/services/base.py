"""Service base class, error types and the bulk-operation accumulator."""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..utils.logging import get_logger

logger = get_logger("services")


class ServiceError(Exception):
    """A service operation failed. Routes map ``status_code`` onto the response."""

    status_code = 500


class NotFoundError(ServiceError):
    status_code = 404


class ValidationError(ServiceError):
    status_code = 400


class ConflictError(ServiceError):
    status_code = 409


@contextmanager
def db_errors(action: str, **context) -> Iterator[None]:
    """Log database failures and re-raise them as ``ServiceError('Failed to <action>')``."""
    try:
        yield
    except ServiceError:
        raise
    except IntegrityError as exc:
        logger.warning("integrity_error", action=action, error=str(exc.orig), **context)
        raise ConflictError(f"Failed to {action}: duplicate or invalid reference") from exc
    except SQLAlchemyError as exc:
        logger.error("database_error", action=action, error=str(exc), **context)
        raise ServiceError(f"Failed to {action}") from exc


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class BulkOperationResult:
    """Per-item outcome of a bulk operation; failures never abort the batch."""

    success: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)
    details: dict[str, int] = field(default_factory=lambda: {
        "created": 0,
        "updated": 0,
        "deleted": 0,
        "activated": 0,
        "deactivated": 0,
    })

    def ok(self, detail: str) -> None:
        self.success += 1
        self.details[detail] += 1

    def fail(self, category_id: str, error: str) -> None:
        self.failed += 1
        self.errors.append({"category_id": category_id, "error": error})

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "failed": self.failed,
            "errors": list(self.errors),
            "details": dict(self.details),
        }


class BaseService:
    """Holds the async session factory; each operation opens its own session."""

    def __init__(self, db_session_factory=None):
        self._db_session_factory = db_session_factory

    def set_db_session_factory(self, factory) -> None:
        self._db_session_factory = factory
