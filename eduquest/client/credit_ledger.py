"""
Credit Ledger
Per-client generation quota with an optional user-supplied override
credential that bypasses it.

Two deployments exist and exactly one is chosen per ledger instance
(settings.credits_mode):
- "local": the counter lives and persists with the client
- "server": the credit service counter is authoritative and the local value
  is a display cache refreshed on hydration and after every server call
"""
import logging
from typing import Any, Dict, Optional

from eduquest.client.backend import CreditServiceClient, CreditServiceRejected
from eduquest.core.config import Settings
from eduquest.db.storage import StoragePort
from eduquest.models.credits import CreditLedgerState, CreditsData

logger = logging.getLogger(__name__)

CREDITS_KEY = "eduquest-credits"
INITIAL_CREDITS = 4


class CreditLedger:
    """State and override handling shared by both deployments"""

    persist_credits = False

    def __init__(self, storage: StoragePort, initial_credits: int = INITIAL_CREDITS):
        self.storage = storage
        self.initial_credits = initial_credits
        self._credits = initial_credits
        self._override: Optional[str] = None
        self.hydrated = False

    # ==================== STATE ====================

    @property
    def credits_remaining(self) -> int:
        return self._credits

    @property
    def override_credential(self) -> Optional[str]:
        return self._override

    @property
    def using_override(self) -> bool:
        return self._override is not None

    def snapshot(self) -> CreditLedgerState:
        return CreditLedgerState(
            credits_remaining=self._credits,
            override_credential=self._override,
            hydrated=self.hydrated,
        )

    # ==================== PERSISTENCE ====================

    def _record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "overrideCredential": self._override,
            "usingOverride": self.using_override,
        }
        if self.persist_credits:
            record["creditsRemaining"] = self._credits
        return record

    def _persist(self) -> None:
        self.storage.save(CREDITS_KEY, self._record())

    def _restore(self, raw: Optional[Dict[str, Any]]) -> None:
        if not raw:
            return
        credential = raw.get("overrideCredential")
        # usingOverride is always derived from the credential
        self._override = credential if isinstance(credential, str) and credential else None
        if self.persist_credits:
            stored = raw.get("creditsRemaining")
            if isinstance(stored, int) and not isinstance(stored, bool):
                self._credits = max(0, stored)

    async def _load(self) -> None:
        try:
            self._restore(await self.storage.load(CREDITS_KEY))
        except Exception as e:
            logger.error(f"❌ Error hydrating credits store: {e}")

    # ==================== OVERRIDE CREDENTIAL ====================

    def _set_override(self, value: Optional[str]) -> None:
        self._override = value
        self._persist()

    async def set_override_credential(self, value: str) -> None:
        if not value or not value.strip():
            raise ValueError("Override credential cannot be empty")
        self._set_override(value.strip())
        logger.info("🔑 Override credential set; credits will not be consumed")

    async def clear_override_credential(self) -> None:
        """Remove the override; consumed credits are not restored"""
        self._set_override(None)
        logger.info("🔑 Override credential cleared")

    # ==================== QUOTA ====================

    async def hydrate(self) -> None:
        raise NotImplementedError

    async def try_consume_credit(self) -> bool:
        raise NotImplementedError

    async def reset_credits(self) -> bool:
        raise NotImplementedError


class LocalCreditLedger(CreditLedger):
    """Counter kept and persisted on the client"""

    persist_credits = True

    def __init__(
        self,
        storage: StoragePort,
        initial_credits: int = INITIAL_CREDITS,
        allow_reset: bool = True
    ):
        super().__init__(storage, initial_credits)
        self.allow_reset = allow_reset

    async def hydrate(self) -> None:
        await self._load()
        self.hydrated = True
        logger.info(f"✅ Credits store hydrated ({self._credits} credits, override={self.using_override})")

    async def try_consume_credit(self) -> bool:
        if self.using_override:
            return True
        if self._credits <= 0:
            logger.warning("⚠️ No credits remaining")
            return False
        self._credits -= 1
        self._persist()
        logger.info(f"💳 Credit consumed, {self._credits} remaining")
        return True

    async def reset_credits(self) -> bool:
        if not self.allow_reset:
            logger.warning("⚠️ Credit reset refused in production")
            return False
        self._credits = self.initial_credits
        self._persist()
        return True


class ServerCreditLedger(CreditLedger):
    """
    Counter owned by the credit service.

    Transport failures propagate to the caller (the request gate classifies
    them); only an explicit refusal from the service returns False.
    """

    def __init__(
        self,
        storage: StoragePort,
        client: CreditServiceClient,
        initial_credits: int = INITIAL_CREDITS
    ):
        super().__init__(storage, initial_credits)
        self.client = client

    def _apply(self, data: CreditsData) -> None:
        self._credits = max(0, data.credits)

    async def sync(self) -> None:
        """Refresh the cached counter and align the server's override flag"""
        try:
            data = await self.client.get_state()
            self._apply(data)
            if data.hasLocalApiKey != self.using_override:
                self._apply(await self.client.post_action("setApiKeyStatus", self.using_override))
        except Exception as e:
            logger.error(f"❌ Failed to sync credits with server: {e}")

    async def hydrate(self) -> None:
        await self._load()
        await self.sync()
        self.hydrated = True
        logger.info(f"✅ Credits store hydrated ({self._credits} credits, override={self.using_override})")

    async def try_consume_credit(self) -> bool:
        if self.using_override:
            return True
        try:
            self._apply(await self.client.post_action("decrement"))
        except CreditServiceRejected as e:
            logger.warning(f"⚠️ Credit decrement refused: {e.message}")
            return False
        logger.info(f"💳 Credit consumed, {self._credits} remaining")
        return True

    async def reset_credits(self) -> bool:
        try:
            self._apply(await self.client.post_action("reset"))
        except CreditServiceRejected as e:
            logger.warning(f"⚠️ Credit reset refused: {e.message}")
            return False
        return True

    async def _report_override(self) -> None:
        try:
            self._apply(await self.client.post_action("setApiKeyStatus", self.using_override))
        except Exception as e:
            logger.error(f"❌ Failed to update API key status on server: {e}")

    async def set_override_credential(self, value: str) -> None:
        await super().set_override_credential(value)
        await self._report_override()

    async def clear_override_credential(self) -> None:
        await super().clear_override_credential()
        await self._report_override()
        await self.sync()


def build_credit_ledger(
    config: Settings,
    storage: StoragePort,
    client: Optional[CreditServiceClient] = None
) -> CreditLedger:
    """Create the ledger for the deployment selected by config.credits_mode"""
    if config.credits_mode == "local":
        return LocalCreditLedger(
            storage,
            initial_credits=config.initial_credits,
            allow_reset=not config.is_production,
        )
    if config.credits_mode == "server":
        if client is None:
            client = CreditServiceClient(config.api_base_url, timeout=config.text_timeout)
        return ServerCreditLedger(storage, client, initial_credits=config.initial_credits)

    raise ValueError(f"Invalid credits mode: {config.credits_mode}")
