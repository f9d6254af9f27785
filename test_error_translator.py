"""
Tests for the upstream error translation table.
"""

import httpx
import pytest

from conftest import plaid_error
from phenom.core import errors
from phenom.core.errors import ProviderError, translate


@pytest.mark.parametrize(
    "code, expected_status, expected_body",
    [
        ("PRODUCT_NOT_READY", 202, {"pending": True}),
        ("ITEM_LOGIN_REQUIRED", 401, {"relink": True, "reason": "ITEM_LOGIN_REQUIRED"}),
        ("INVALID_ACCESS_TOKEN", 401, {"error": "INVALID_ACCESS_TOKEN"}),
        ("RATE_LIMIT_EXCEEDED", 500, {"error": "RATE_LIMIT_EXCEEDED"}),
        ("SOMETHING_NEW", 500, {"error": "SOMETHING_NEW"}),
    ],
)
def test_known_and_unrecognised_codes(code, expected_status, expected_body):
    exc = ProviderError("boom", payload=plaid_error(code), status_code=400)
    assert translate(exc) == (expected_status, expected_body)


@pytest.mark.parametrize(
    "upstream",
    [
        ProviderError("no body"),
        ProviderError("empty", payload={}),
        ProviderError("blank code", payload={"error_code": "  "}),
        ProviderError("wrong type", payload={"error_code": 42}),
        RuntimeError("not a provider error at all"),
        None,
        "garbage",
        ["error_code", "ITEM_LOGIN_REQUIRED"],
    ],
)
def test_missing_or_malformed_code_is_unknown_error(upstream):
    assert translate(upstream) == (500, {"error": "unknown error"})


def test_raw_mapping_is_accepted():
    assert translate({"error_code": "ITEM_LOGIN_REQUIRED"}) == (
        401,
        {"relink": True, "reason": "ITEM_LOGIN_REQUIRED"},
    )


def test_http_status_error_body_is_read():
    request = httpx.Request("POST", "https://sandbox.plaid.com/accounts/get")
    response = httpx.Response(400, json=plaid_error("INVALID_ACCESS_TOKEN"), request=request)
    exc = httpx.HTTPStatusError("bad", request=request, response=response)
    assert translate(exc) == (401, {"error": "INVALID_ACCESS_TOKEN"})


def test_http_status_error_with_non_json_body():
    request = httpx.Request("POST", "https://sandbox.plaid.com/accounts/get")
    response = httpx.Response(502, text="<html>bad gateway</html>", request=request)
    exc = httpx.HTTPStatusError("bad", request=request, response=response)
    assert translate(exc) == (500, {"error": "unknown error"})


def test_translation_survives_broken_logging(monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("log sink is down")

    monkeypatch.setattr(errors.logger, "error", explode)
    exc = ProviderError("boom", payload=plaid_error("PRODUCT_NOT_READY"))
    assert translate(exc, where="transactions_get") == (202, {"pending": True})


def test_raw_payload_is_logged(caplog):
    exc = ProviderError("boom", payload=plaid_error("ITEM_LOGIN_REQUIRED"))
    with caplog.at_level("ERROR", logger="phenom.core.errors"):
        translate(exc, where="accounts_get")
    assert "[Plaid accounts_get]" in caplog.text
    assert "ITEM_LOGIN_REQUIRED" in caplog.text


def test_translate_returns_fresh_bodies():
    exc = ProviderError("boom", payload=plaid_error("PRODUCT_NOT_READY"))
    _, body = translate(exc)
    body["pending"] = False
    assert translate(exc) == (202, {"pending": True})
