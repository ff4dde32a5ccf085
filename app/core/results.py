"""Uniform ``{success, error?}`` result returned by every facade operation."""

import logging
from typing import Any, Optional

from pydantic import BaseModel

from app.core.errors import AppError, STATUS_BY_CODE

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."


class OperationResult(BaseModel):
    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    data: Optional[Any] = None
    degraded: bool = False

    @classmethod
    def ok(cls, data: Any = None, degraded: bool = False) -> "OperationResult":
        return cls(success=True, data=data, degraded=degraded)

    @classmethod
    def from_error(cls, exc: Exception) -> "OperationResult":
        """Failure result that never carries internal store or provider text."""
        if isinstance(exc, AppError):
            return cls(success=False, error=exc.public_message, code=exc.code)
        logger.exception("Unexpected error: %s", exc)
        return cls(success=False, error=GENERIC_FAILURE_MESSAGE, code=AppError.code)

    @property
    def status_code(self) -> int:
        if self.success:
            return 200
        return STATUS_BY_CODE.get(self.code or "", 500)
