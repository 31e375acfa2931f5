# backend/drivebook/services/base.py
"""
Shared service plumbing.

Every service owns its unit of work through transaction(), logs under its
class name, and reports timings to Prometheus through measure_operation.
Repositories never commit; only services do.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Base class for services that work against a single SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any error.

        SQLAlchemy errors surface as ServiceException; domain exceptions
        raised inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error("transaction_failed", extra={"error": str(e)})
            raise ServiceException("Database operation failed", details={"error": str(e)})
        except Exception as e:
            self.db.rollback()
            self.logger.debug("transaction_rolled_back", extra={"error_type": type(e).__name__})
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Time the wrapped method and record it under operation_name."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "slow_operation",
                            extra={"operation": operation_name, "seconds": round(elapsed, 3)},
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(operation, extra={"operation": operation, **context})
