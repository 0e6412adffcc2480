"""
Error Models
Structured error taxonomy reported by the generation request gate and
returned in API error bodies
FILE: eduquest/models/errors.py
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    QUOTA_EXHAUSTED = "QUOTA_EXHAUSTED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NO_CONTENT = "NO_CONTENT"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class GateError(BaseModel):
    """Error reported to callers instead of an exception"""
    kind: ErrorKind
    message: str
    details: Optional[Any] = None

    @property
    def needs_override_credential(self) -> bool:
        return self.kind == ErrorKind.QUOTA_EXHAUSTED

    @property
    def retryable(self) -> bool:
        """Whether re-invoking the same action by hand makes sense"""
        return self.kind != ErrorKind.QUOTA_EXHAUSTED


class ApiErrorBody(BaseModel):
    """Error object embedded in failed API responses"""
    code: str
    message: str
    details: Optional[Any] = None


class ApiErrorResponse(BaseModel):
    success: bool = False
    error: ApiErrorBody
