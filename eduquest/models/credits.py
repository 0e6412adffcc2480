"""
Credit Models
Client ledger state, server-side credit accounts and the credits API payloads
FILE: eduquest/models/credits.py
"""
from typing import Optional

from pydantic import BaseModel, Field


class CreditLedgerState(BaseModel):
    """
    Snapshot of a client's credit ledger.
    using_override is derived from override_credential and never stored on its own.
    """
    credits_remaining: int = Field(..., ge=0)
    override_credential: Optional[str] = None
    hydrated: bool = False

    @property
    def using_override(self) -> bool:
        return self.override_credential is not None


class CreditAccount(BaseModel):
    """Server-side per-client quota record, keyed by request fingerprint"""
    id: str
    credits: int = Field(..., ge=0)
    hasLocalApiKey: bool = False
    createdAt: float
    lastAccessed: float
    ipAddress: str
    userAgent: str
    fingerprint: str


class CreditActionRequest(BaseModel):
    """Request model for POST /api/session/credits"""
    action: str = Field(..., description="decrement, reset or setApiKeyStatus")
    hasLocalApiKey: Optional[bool] = None

    class Config:
        json_schema_extra = {
            "example": {"action": "setApiKeyStatus", "hasLocalApiKey": True}
        }


class CreditsDebug(BaseModel):
    ip: str
    userAgent: str
    totalSessions: int


class CreditsData(BaseModel):
    credits: int
    hasLocalApiKey: bool
    userId: str
    fingerprint: str = Field(..., description="Truncated fingerprint for debugging")
    debug: Optional[CreditsDebug] = None


class CreditsResponse(BaseModel):
    success: bool = True
    data: CreditsData
