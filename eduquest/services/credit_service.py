"""
Credit Service
Server-side per-client generation quota. Clients are identified by a
fingerprint of their request headers; accounts idle longer than the TTL expire.
FILE: eduquest/services/credit_service.py
"""
import asyncio
import hashlib
import logging
import time
import uuid
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from eduquest.core.config import Settings, settings
from eduquest.db.storage import StoragePort, get_storage
from eduquest.models.credits import CreditAccount, CreditsData, CreditsDebug

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "credit-accounts"


class CreditServiceError(Exception):
    """Raised when a credit action is refused"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ClientInfo(BaseModel):
    """Request attributes that make up a client fingerprint"""
    ip: str = "127.0.0.1"
    user_agent: str = ""
    accept_language: str = ""
    accept_encoding: str = ""


def client_ip(forwarded_for: Optional[str], remote_addr: Optional[str]) -> str:
    """First X-Forwarded-For hop, else the socket peer, without the IPv4-mapped prefix"""
    ip = "127.0.0.1"
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            ip = first
    elif remote_addr:
        ip = remote_addr
    return ip.replace("::ffff:", "")


def fingerprint(client: ClientInfo, secret: str) -> str:
    data = f"{client.ip}:{client.user_agent}:{client.accept_language}:{client.accept_encoding}"
    return hashlib.sha256((data + secret).encode("utf-8")).hexdigest()


class CreditService:
    """Fingerprinted credit accounts persisted under a single storage key"""

    def __init__(
        self,
        storage: Optional[StoragePort] = None,
        config: Settings = settings,
        clock: Callable[[], float] = time.time
    ):
        self.storage = storage or get_storage()
        self.config = config
        self.clock = clock
        self._accounts: Optional[Dict[str, CreditAccount]] = None
        self._lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self.config.credit_account_ttl_hours * 60 * 60

    # ==================== PERSISTENCE ====================

    async def _load(self) -> Dict[str, CreditAccount]:
        if self._accounts is None:
            raw = await self.storage.load(ACCOUNTS_KEY) or {}
            accounts = {}
            for key, value in raw.items():
                try:
                    accounts[key] = CreditAccount.model_validate(value)
                except ValueError as e:
                    logger.warning(f"⚠️ Dropping invalid credit account {key[:8]}: {e}")
            self._accounts = accounts
            logger.info(f"✓ Loaded {len(accounts)} credit accounts from storage")
        return self._accounts

    def _save(self) -> None:
        self.storage.save(
            ACCOUNTS_KEY,
            {key: account.model_dump() for key, account in self._accounts.items()}
        )

    def _cleanup(self, now: float) -> int:
        expired = [
            key for key, account in self._accounts.items()
            if now - account.lastAccessed > self.ttl_seconds
        ]
        for key in expired:
            del self._accounts[key]
        if expired:
            logger.info(f"🧹 Expired {len(expired)} idle credit accounts")
        return len(expired)

    # ==================== ACCOUNTS ====================

    def _get_or_create(self, client: ClientInfo, now: float) -> CreditAccount:
        fp = fingerprint(client, self.config.session_secret)

        account = self._accounts.get(fp)
        if account is not None:
            account.lastAccessed = now
            return account

        # Same IP and user agent under a changed fingerprint (e.g. new Accept-Language)
        for key, existing in list(self._accounts.items()):
            if existing.ipAddress == client.ip and existing.userAgent == client.user_agent:
                del self._accounts[key]
                existing.fingerprint = fp
                existing.lastAccessed = now
                self._accounts[fp] = existing
                return existing

        account = CreditAccount(
            id=str(uuid.uuid4()),
            credits=self.config.initial_credits,
            hasLocalApiKey=False,
            createdAt=now,
            lastAccessed=now,
            ipAddress=client.ip,
            userAgent=client.user_agent,
            fingerprint=fp,
        )
        self._accounts[fp] = account
        logger.info(f"🆕 Created credit account {account.id}")
        return account

    def _to_data(self, account: CreditAccount, debug: bool = False) -> CreditsData:
        return CreditsData(
            credits=account.credits,
            hasLocalApiKey=account.hasLocalApiKey,
            userId=account.id,
            fingerprint=account.fingerprint[:8] + "...",
            debug=CreditsDebug(
                ip=account.ipAddress,
                userAgent=account.userAgent[:50] + "...",
                totalSessions=len(self._accounts),
            ) if debug else None,
        )

    async def get_credits(self, client: ClientInfo) -> CreditsData:
        """Current state for the client, creating an account on first contact"""
        async with self._lock:
            await self._load()
            now = self.clock()
            self._cleanup(now)
            account = self._get_or_create(client, now)
            self._save()
            return self._to_data(account, debug=self.config.environment == "development")

    async def apply_action(
        self,
        client: ClientInfo,
        action: str,
        has_local_api_key: Optional[bool] = None
    ) -> CreditsData:
        """
        Apply a credit action for the client

        Raises:
            CreditServiceError: No credits (400), reset in production (403),
                unknown action (400)
        """
        async with self._lock:
            await self._load()
            now = self.clock()
            self._cleanup(now)
            account = self._get_or_create(client, now)

            if action == "decrement":
                if account.hasLocalApiKey:
                    # Clients with their own key are never charged
                    pass
                elif account.credits <= 0:
                    self._save()
                    raise CreditServiceError("No credits remaining", 400)
                else:
                    account.credits -= 1
                    logger.info(f"💳 Account {account.id}: {account.credits} credits left")

            elif action == "setApiKeyStatus":
                account.hasLocalApiKey = bool(has_local_api_key)

            elif action == "reset":
                if self.config.is_production:
                    self._save()
                    raise CreditServiceError("Reset not allowed in production", 403)
                account.credits = self.config.initial_credits

            else:
                raise CreditServiceError("Invalid action", 400)

            self._save()
            return self._to_data(account)


# ==================== SINGLETON ====================

_credit_service: Optional[CreditService] = None


def get_credit_service() -> CreditService:
    """Get or create credit service singleton"""
    global _credit_service

    if _credit_service is None:
        _credit_service = CreditService()

    return _credit_service


def set_credit_service(service: Optional[CreditService]) -> None:
    global _credit_service
    _credit_service = service
