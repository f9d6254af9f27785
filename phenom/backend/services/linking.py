from __future__ import annotations

import logging
from typing import Optional

from phenom.core.data_models import LinkAttempt, LinkSession, LinkState
from phenom.core.database import CredentialStore, LinkedCredential
from phenom.core.errors import InvalidRequest
from phenom.core.plaid_client import PlaidClient

from ..config import Settings, settings as default_settings

logger = logging.getLogger("phenom.backend.linking")


def _transition(attempt: LinkAttempt, state: LinkState) -> None:
    logger.info("Link attempt for user '%s': %s -> %s", attempt.user_id, attempt.state.value, state.value)
    attempt.state = state


class LinkLifecycleManager:
    """Turns a transient link flow into a durable per-user credential."""

    def __init__(self, store: CredentialStore, plaid: PlaidClient, settings: Optional[Settings] = None):
        self.store = store
        self.plaid = plaid
        self.settings = settings or default_settings

    async def begin_link(self, user_id: str) -> LinkSession:
        attempt = LinkAttempt(user_id=user_id)
        try:
            payload = await self.plaid.create_link_token(
                user_id,
                client_name=self.settings.plaid_client_name,
                products=self.settings.plaid_products,
                country_codes=self.settings.plaid_country_codes,
                language=self.settings.plaid_language,
            )
        except Exception:
            _transition(attempt, LinkState.FAILED)
            raise
        _transition(attempt, LinkState.SESSION_CREATED)
        return LinkSession(
            user_id=user_id,
            link_token=payload.get("link_token"),
            expiration=payload.get("expiration"),
            payload=payload,
        )

    async def complete_link(
        self,
        user_id: str,
        transient_proof: Optional[str],
        institution_label: Optional[str] = None,
    ) -> LinkedCredential:
        """Exchange the public token and persist the resulting credential.

        Nothing is written unless the exchange succeeds. Linking the same
        institution twice yields two credentials.
        """
        if not transient_proof or not transient_proof.strip():
            raise InvalidRequest("Missing public_token")

        attempt = LinkAttempt(user_id=user_id, state=LinkState.SESSION_CREATED)
        try:
            exchange = await self.plaid.exchange_public_token(transient_proof.strip())
        except Exception:
            _transition(attempt, LinkState.FAILED)
            raise

        credential = LinkedCredential(
            user_id=user_id,
            access_secret=exchange["access_token"],
            institution_label=institution_label,
            item_id=exchange.get("item_id"),
        )
        try:
            attempt.credential = self.store.save(user_id, credential)
        except Exception:
            _transition(attempt, LinkState.FAILED)
            raise
        _transition(attempt, LinkState.EXCHANGED)
        return attempt.credential
