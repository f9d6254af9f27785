import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from .errors import ProviderError

logger = logging.getLogger(__name__)
DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=5.0)

RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.NetworkError,
)


def _is_retryable(exc: BaseException) -> bool:
    """Retry only on transport errors and HTTP 5xx; Plaid business errors are final."""
    if isinstance(exc, ProviderError):
        return exc.status_code is not None and exc.status_code >= 500
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


api_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)

DateLike = Union[date, str]


def _iso(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)


class PlaidClient:
    """Thin async wrapper over the Plaid REST endpoints the gateway needs."""

    def __init__(
        self,
        api_base_url: str,
        client_id: Optional[str],
        secret: Optional[str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ):
        if not api_base_url:
            raise ValueError("api_base_url is required.")

        self.api_base_url = api_base_url.rstrip("/")
        self.client_id = client_id
        self.secret = secret
        self._client = httpx.AsyncClient(
            base_url=self.api_base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _credentials(self) -> Dict[str, str]:
        if not self.client_id or not self.secret:
            raise ProviderError("Server is missing Plaid credentials (PLAID_CLIENT_ID / PLAID_SECRET).")
        return {"client_id": self.client_id, "secret": self.secret}

    @api_retry
    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = {**self._credentials(), **body}
        response = await self._client.post(endpoint, json=payload)

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = None
            if not isinstance(error_data, dict):
                error_data = None
            code = (error_data or {}).get("error_code", "UNKNOWN")
            message = (error_data or {}).get("error_message") or response.text
            logger.warning("Plaid %s failed with HTTP %s [%s]", endpoint, response.status_code, code)
            raise ProviderError(
                f"Plaid API error [{code}]: {message}",
                payload=error_data,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"Plaid {endpoint} returned a non-JSON body.", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise ProviderError(f"Plaid {endpoint} returned an unexpected body.", status_code=response.status_code)
        return data

    async def create_link_token(
        self,
        user_id: str,
        client_name: str,
        products: Sequence[str] = ("transactions",),
        country_codes: Sequence[str] = ("US",),
        language: str = "en",
    ) -> Dict[str, Any]:
        """Step 1 of the link flow: a short-lived token for the client-side widget."""
        body = {
            "user": {"client_user_id": user_id},
            "client_name": client_name,
            "products": list(products),
            "country_codes": list(country_codes),
            "language": language,
        }
        logger.info("Creating link token for user '%s'", user_id)
        return await self._post("/link/token/create", body)

    async def exchange_public_token(self, public_token: str) -> Dict[str, Any]:
        """Swap the public token produced by the link widget for a durable access token."""
        data = await self._post("/item/public_token/exchange", {"public_token": public_token})
        if not data.get("access_token"):
            raise ProviderError("Plaid exchange response did not include an access_token.", payload=None)
        return data

    async def get_accounts(self, access_token: str) -> List[Dict[str, Any]]:
        data = await self._post("/accounts/get", {"access_token": access_token})
        return list(data.get("accounts") or [])

    async def get_transactions(
        self,
        access_token: str,
        start_date: DateLike,
        end_date: DateLike,
        count: int = 500,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Fetch a single page of transactions for one item."""
        body = {
            "access_token": access_token,
            "start_date": _iso(start_date),
            "end_date": _iso(end_date),
            "options": {"count": count, "offset": offset},
        }
        data = await self._post("/transactions/get", body)
        transactions = list(data.get("transactions") or [])
        total = data.get("total_transactions")
        if isinstance(total, int) and total > offset + len(transactions):
            logger.info(
                "Plaid reported %d transactions, returning page of %d (offset=%d)",
                total,
                len(transactions),
                offset,
            )
        return transactions
