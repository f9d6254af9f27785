"""Shared fixtures: a scripted Plaid stand-in and a throwaway credential store."""

import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from phenom.backend.app import create_app
from phenom.backend.config import Settings
from phenom.core.database import SQLiteCredentialStore
from phenom.core.plaid_client import PlaidClient

PLAID_TEST_URL = "https://sandbox.plaid.com"


def plaid_error(code: str, message: str = "scripted failure") -> Dict[str, Any]:
    return {
        "error_type": "ITEM_ERROR",
        "error_code": code,
        "error_message": message,
        "display_message": None,
        "request_id": "req-test",
    }


class FakePlaid:
    """Scripted responses keyed by access token.

    A list value is returned as the record set; a dict value is returned as a
    400 error body; a ``httpx.Response`` is returned verbatim.
    """

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.accounts: Dict[str, Any] = {}
        self.transactions: Dict[str, Any] = {}
        self.link_token_error: Optional[Dict[str, Any]] = None
        self.exchange_error: Optional[Dict[str, Any]] = None
        self._tokens = itertools.count(1)

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [call["body"] for call in self.calls if call["path"] == path]

    def _scripted(self, value: Any, key: str) -> httpx.Response:
        if isinstance(value, httpx.Response):
            return value
        if isinstance(value, dict):
            return httpx.Response(400, json=value)
        return httpx.Response(200, json={key: value or [], "total_transactions": len(value or [])})

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        path = request.url.path
        self.calls.append({"path": path, "body": body})

        if path == "/link/token/create":
            if self.link_token_error:
                return httpx.Response(400, json=self.link_token_error)
            user = body["user"]["client_user_id"]
            return httpx.Response(
                200,
                json={
                    "link_token": f"link-sandbox-{user}",
                    "expiration": "2024-06-01T12:00:00Z",
                    "request_id": "req-link",
                },
            )
        if path == "/item/public_token/exchange":
            if self.exchange_error:
                return httpx.Response(400, json=self.exchange_error)
            n = next(self._tokens)
            return httpx.Response(
                200,
                json={"access_token": f"access-sandbox-{n}", "item_id": f"item-{n}", "request_id": "req-x"},
            )
        if path == "/accounts/get":
            return self._scripted(self.accounts.get(body["access_token"], []), "accounts")
        if path == "/transactions/get":
            return self._scripted(self.transactions.get(body["access_token"], []), "transactions")
        return httpx.Response(404, json=plaid_error("NOT_FOUND"))


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def fake_plaid() -> FakePlaid:
    return FakePlaid()


@pytest.fixture
def plaid_client(fake_plaid: FakePlaid) -> PlaidClient:
    return PlaidClient(
        api_base_url=PLAID_TEST_URL,
        client_id="test-client",
        secret="test-secret",
        transport=httpx.MockTransport(fake_plaid.handler),
    )


@pytest.fixture
def store(tmp_path) -> SQLiteCredentialStore:
    credential_store = SQLiteCredentialStore(str(tmp_path / "tokens.db"))
    credential_store.initialize()
    return credential_store


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    monkeypatch.setenv("PLAID_ENV", "sandbox")
    monkeypatch.setenv("ENVIRONMENT_LABEL", "TEST")
    return Settings()


@pytest.fixture
def client(store, plaid_client, test_settings):
    app = create_app(store=store, plaid=plaid_client, settings=test_settings)
    with TestClient(app) as test_client:
        yield test_client
