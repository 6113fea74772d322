"""
Typed ledger errors.

Every error is an HTTPException so FastAPI renders it directly; the detail is
a dict with a stable `code` the UI can switch on.
"""

from typing import Optional

from fastapi import HTTPException, status


class LedgerError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        field: Optional[str] = None,
        bound: Optional[str] = None,
    ):
        self.message = message
        if code:
            self.code = code
        self.field = field
        self.bound = bound
        detail = {"code": self.code, "message": message}
        if field is not None:
            detail["field"] = field
        if bound is not None:
            detail["bound"] = bound
        super().__init__(status_code=self.status_code, detail=detail)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class NotFoundError(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class InvariantViolation(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "INVARIANT_VIOLATION"


class ConflictError(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InternalError(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL"


def total_bottles_not_found() -> NotFoundError:
    return NotFoundError("Total bottles record not found", code="TOTAL_BOTTLES_404")


def bottle_usage_not_found(day=None) -> NotFoundError:
    if day is None:
        return NotFoundError("Bottle usage record not found", code="BOTTLE_USAGE_404")
    return NotFoundError(f"No bottle usage found for {day.isoformat()}", code="BOTTLE_USAGE_404")
