"""Tests for the local and server-backed credit ledgers."""

import json

import httpx
import pytest

from eduquest.client.backend import CreditServiceClient
from eduquest.client.credit_ledger import (
    CREDITS_KEY,
    LocalCreditLedger,
    ServerCreditLedger,
    build_credit_ledger,
)
from eduquest.core.config import Settings
from eduquest.db.storage import MemoryStorage


class FakeCreditServer:
    """In-process stand-in for /api/session/credits"""

    def __init__(self, credits=4, has_key=False):
        self.credits = credits
        self.has_key = has_key
        self.actions = []
        self.fail_with = None

    def _data(self):
        return {"credits": self.credits, "hasLocalApiKey": self.has_key,
                "userId": "user-1", "fingerprint": "abcd1234..."}

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with is not None:
            raise self.fail_with
        if request.method == "GET":
            return httpx.Response(200, json={"success": True, "data": self._data()})

        body = json.loads(request.content)
        self.actions.append(body)
        action = body["action"]
        if action == "decrement" and not self.has_key:
            if self.credits <= 0:
                return httpx.Response(400, json={"success": False, "error": "No credits remaining"})
            self.credits -= 1
        elif action == "setApiKeyStatus":
            self.has_key = bool(body.get("hasLocalApiKey"))
        elif action == "reset":
            self.credits = 4
        return httpx.Response(200, json={"success": True, "data": self._data()})

    def client(self) -> CreditServiceClient:
        transport = httpx.MockTransport(self.handler)
        return CreditServiceClient(
            "http://test",
            client=httpx.AsyncClient(transport=transport, base_url="http://test"),
        )


class TestLocalLedger:
    async def test_quota_exhausts_after_initial_credits(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.hydrate()

        results = [await ledger.try_consume_credit() for _ in range(5)]

        assert results == [True, True, True, True, False]
        assert ledger.credits_remaining == 0

    async def test_refusal_does_not_mutate(self, storage):
        ledger = LocalCreditLedger(storage, initial_credits=0)
        saves = storage.save_count
        assert await ledger.try_consume_credit() is False
        assert ledger.credits_remaining == 0
        assert storage.save_count == saves

    async def test_override_bypasses_quota(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.set_override_credential("user-key")

        for _ in range(100):
            assert await ledger.try_consume_credit() is True
        assert ledger.credits_remaining == 4

    async def test_clearing_override_does_not_restore_credits(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.try_consume_credit()
        await ledger.set_override_credential("user-key")
        await ledger.clear_override_credential()

        assert ledger.using_override is False
        assert ledger.override_credential is None
        assert ledger.credits_remaining == 3

    async def test_blank_override_rejected(self, storage):
        ledger = LocalCreditLedger(storage)
        with pytest.raises(ValueError):
            await ledger.set_override_credential("   ")
        assert ledger.using_override is False

    async def test_reset_restores_initial(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.try_consume_credit()
        assert await ledger.reset_credits() is True
        assert ledger.credits_remaining == 4

    async def test_reset_refused_when_not_allowed(self, storage):
        ledger = LocalCreditLedger(storage, allow_reset=False)
        await ledger.try_consume_credit()
        assert await ledger.reset_credits() is False
        assert ledger.credits_remaining == 3

    async def test_state_survives_hydration(self, storage):
        writer = LocalCreditLedger(storage)
        await writer.try_consume_credit()
        await writer.set_override_credential("user-key")

        reader = LocalCreditLedger(storage)
        assert reader.hydrated is False
        await reader.hydrate()

        assert reader.hydrated is True
        assert reader.credits_remaining == 3
        assert reader.override_credential == "user-key"
        assert reader.using_override is True

    async def test_persisted_record_layout(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.set_override_credential("k")
        assert storage.peek(CREDITS_KEY) == {
            "overrideCredential": "k", "usingOverride": True, "creditsRemaining": 4
        }

    async def test_using_override_derived_from_credential(self):
        storage = MemoryStorage({CREDITS_KEY: {"overrideCredential": None, "usingOverride": True}})
        ledger = LocalCreditLedger(storage)
        await ledger.hydrate()
        assert ledger.using_override is False

    async def test_snapshot(self, storage):
        ledger = LocalCreditLedger(storage)
        await ledger.hydrate()
        state = ledger.snapshot()
        assert state.credits_remaining == 4
        assert state.hydrated is True
        assert state.using_override is False


class TestServerLedger:
    async def test_hydrate_syncs_counter(self, storage):
        server = FakeCreditServer(credits=2)
        ledger = ServerCreditLedger(storage, server.client())
        await ledger.hydrate()

        assert ledger.hydrated is True
        assert ledger.credits_remaining == 2

    async def test_hydrate_aligns_override_flag(self, storage):
        await LocalCreditLedger(storage).set_override_credential("user-key")
        server = FakeCreditServer()

        ledger = ServerCreditLedger(storage, server.client())
        await ledger.hydrate()

        assert server.has_key is True
        assert server.actions == [{"action": "setApiKeyStatus", "hasLocalApiKey": True}]

    async def test_decrement_until_refused(self, storage):
        server = FakeCreditServer(credits=1)
        ledger = ServerCreditLedger(storage, server.client())

        assert await ledger.try_consume_credit() is True
        assert ledger.credits_remaining == 0
        assert await ledger.try_consume_credit() is False
        assert ledger.credits_remaining == 0

    async def test_override_skips_server(self, storage):
        server = FakeCreditServer()
        ledger = ServerCreditLedger(storage, server.client())
        await ledger.set_override_credential("user-key")
        server.actions.clear()

        assert await ledger.try_consume_credit() is True
        assert server.actions == []

    async def test_credits_not_persisted_locally(self, storage):
        server = FakeCreditServer()
        ledger = ServerCreditLedger(storage, server.client())
        await ledger.set_override_credential("user-key")
        assert "creditsRemaining" not in storage.peek(CREDITS_KEY)

    async def test_transport_error_propagates(self, storage):
        server = FakeCreditServer()
        server.fail_with = httpx.ConnectError("refused")
        ledger = ServerCreditLedger(storage, server.client())

        with pytest.raises(httpx.ConnectError):
            await ledger.try_consume_credit()

    async def test_hydrate_survives_unreachable_server(self, storage):
        server = FakeCreditServer(credits=2)
        server.fail_with = httpx.ConnectError("refused")
        ledger = ServerCreditLedger(storage, server.client())
        await ledger.hydrate()

        assert ledger.hydrated is True
        assert ledger.credits_remaining == 4


class TestFactory:
    def test_local_mode(self, storage):
        ledger = build_credit_ledger(Settings(credits_mode="local", environment="production"), storage)
        assert isinstance(ledger, LocalCreditLedger)
        assert ledger.allow_reset is False

    def test_server_mode(self, storage):
        client = FakeCreditServer().client()
        ledger = build_credit_ledger(Settings(credits_mode="server"), storage, client)
        assert isinstance(ledger, ServerCreditLedger)
        assert ledger.client is client
