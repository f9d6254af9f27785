"""
Aggregation Engine - fans a query out over every credential linked to a user.

Each credential is queried as an isolated task whose failure is captured as a
tagged outcome, so one broken institution only shrinks the merged result.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from phenom.core.data_models import AggregationResult, CredentialOutcome, QueryKind
from phenom.core.database import CredentialStore, LinkedCredential
from phenom.core.errors import InvalidRequest, translate
from phenom.core.plaid_client import PlaidClient

from ..config import Settings, settings as default_settings

logger = logging.getLogger("phenom.backend.aggregation")

DateInput = Union[date, str, None]


def _parse_date(value: DateInput, field_name: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise InvalidRequest(f"Invalid {field_name}: expected YYYY-MM-DD") from exc


class AggregationEngine:
    def __init__(self, store: CredentialStore, plaid: PlaidClient, settings: Optional[Settings] = None):
        self.store = store
        self.plaid = plaid
        self.settings = settings or default_settings

    def resolve_date_range(self, start_date: DateInput = None, end_date: DateInput = None) -> Dict[str, date]:
        """Apply the default window and reject malformed or inverted ranges."""
        start = _parse_date(start_date, "start_date") or date.fromisoformat(self.settings.default_start_date)
        end = _parse_date(end_date, "end_date") or date.today()
        if start > end:
            raise InvalidRequest("start_date must not be after end_date")
        return {"start_date": start, "end_date": end}

    async def _fetch(self, kind: QueryKind, credential: LinkedCredential, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        if kind is QueryKind.ACCOUNTS:
            return await self.plaid.get_accounts(credential.access_secret)
        return await self.plaid.get_transactions(
            credential.access_secret,
            start_date=params["start_date"],
            end_date=params["end_date"],
            count=self.settings.transactions_page_size,
            offset=0,
        )

    async def _query_credential(
        self, kind: QueryKind, credential: LinkedCredential, params: Dict[str, Any]
    ) -> CredentialOutcome:
        try:
            records = await self._fetch(kind, credential, params)
            return CredentialOutcome(credential=credential, records=list(records))
        except Exception as exc:  # noqa: BLE001
            status_code, body = translate(exc, where=f"{kind.value}_get")
            logger.warning(
                "Skipping credential #%s (%s) for user %s: %s -> %s %s",
                credential.id,
                credential.institution_label,
                credential.user_id,
                exc,
                status_code,
                body,
            )
            return CredentialOutcome(credential=credential, error=exc)

    async def query(
        self, user_id: str, kind: Union[QueryKind, str], params: Optional[Dict[str, Any]] = None
    ) -> AggregationResult:
        try:
            kind = QueryKind(kind)
        except ValueError as exc:
            raise InvalidRequest(f"Unsupported query kind '{kind}'") from exc

        params = dict(params or {})
        if kind is QueryKind.TRANSACTIONS:
            params.update(self.resolve_date_range(params.get("start_date"), params.get("end_date")))

        credentials = self.store.list_for(user_id)
        if not credentials:
            logger.info("No linked institutions for user %s; returning empty %s", user_id, kind.value)
            return AggregationResult(kind=kind)

        outcomes = await asyncio.gather(
            *(self._query_credential(kind, credential, params) for credential in credentials)
        )

        records: List[Dict[str, Any]] = []
        for outcome in outcomes:
            if outcome.ok:
                records.extend(outcome.records)

        result = AggregationResult(kind=kind, records=records, outcomes=list(outcomes))
        logger.info(
            "Aggregated %d %s for user %s (credentials=%d, failed=%d)",
            len(records),
            kind.value,
            user_id,
            len(outcomes),
            len(result.failed),
        )
        return result

    async def accounts(self, user_id: str) -> AggregationResult:
        return await self.query(user_id, QueryKind.ACCOUNTS)

    async def transactions(
        self, user_id: str, start_date: DateInput = None, end_date: DateInput = None
    ) -> AggregationResult:
        return await self.query(
            user_id, QueryKind.TRANSACTIONS, {"start_date": start_date, "end_date": end_date}
        )
