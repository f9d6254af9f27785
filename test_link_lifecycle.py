"""
Tests for the link handshake: session -> exchange -> persisted credential.
"""

import pytest

from conftest import plaid_error, run
from phenom.backend.services.linking import LinkLifecycleManager
from phenom.core.errors import InvalidRequest, ProviderError


@pytest.fixture
def manager(store, plaid_client, test_settings):
    return LinkLifecycleManager(store, plaid_client, test_settings)


def test_begin_link_requests_scoped_session(manager, fake_plaid):
    session = run(manager.begin_link("u1"))

    assert session.user_id == "u1"
    assert session.link_token == "link-sandbox-u1"
    assert session.payload["expiration"] == "2024-06-01T12:00:00Z"

    (body,) = fake_plaid.calls_to("/link/token/create")
    assert body["user"] == {"client_user_id": "u1"}
    assert body["products"] == ["transactions"]
    assert body["country_codes"] == ["US"]
    assert body["language"] == "en"
    assert body["client_id"] == "test-client"


def test_begin_link_failure_leaves_no_residue(manager, fake_plaid, store):
    fake_plaid.link_token_error = plaid_error("INVALID_FIELD")
    with pytest.raises(ProviderError) as excinfo:
        run(manager.begin_link("u1"))
    assert excinfo.value.error_code == "INVALID_FIELD"
    assert store.list_for("u1") == []


@pytest.mark.parametrize("proof", [None, "", "   "])
def test_missing_proof_is_rejected_before_network(manager, fake_plaid, store, proof):
    with pytest.raises(InvalidRequest):
        run(manager.complete_link("u1", proof, "Bank A"))
    assert fake_plaid.calls == []
    assert store.list_for("u1") == []


def test_complete_link_persists_credential(manager, store):
    credential = run(manager.complete_link("u1", "public-sandbox-abc", "Bank A"))

    assert credential.access_secret == "access-sandbox-1"
    assert credential.item_id == "item-1"
    assert credential.id is not None
    (stored,) = store.list_for("u1")
    assert stored.access_secret == "access-sandbox-1"
    assert stored.institution_label == "Bank A"


def test_exchange_failure_persists_nothing(manager, fake_plaid, store):
    fake_plaid.exchange_error = plaid_error("INVALID_PUBLIC_TOKEN")
    with pytest.raises(ProviderError):
        run(manager.complete_link("u1", "public-sandbox-expired", "Bank A"))
    assert store.list_for("u1") == []


def test_each_exchange_adds_exactly_one_credential(manager, store):
    for expected in range(1, 4):
        run(manager.complete_link("u1", "public-sandbox-same-bank", "Bank A"))
        assert store.count_for("u1") == expected
    assert len({c.access_secret for c in store.list_for("u1")}) == 3
