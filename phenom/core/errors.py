"""Error vocabulary shared by the gateway.

Plaid failures are converted into a small, provider-agnostic status/body
contract by :func:`translate`. Validation problems with the caller's input are
raised as :class:`InvalidRequest` and never reach the translator.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown error"


class InvalidRequest(Exception):
    """Malformed caller input. Always surfaces as HTTP 400."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProviderError(Exception):
    """A failed call to the upstream provider.

    ``payload`` keeps the raw error body exactly as the provider returned it
    (or ``None`` when the response could not be decoded).
    """

    def __init__(
        self,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.payload = payload
        self.status_code = status_code

    @property
    def error_code(self) -> Optional[str]:
        return _code_from_mapping(self.payload)


@dataclass(frozen=True)
class TranslatedError:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> Tuple[int, Dict[str, Any]]:
        return self.status_code, dict(self.body)


ERROR_POLICY: Dict[str, Callable[[str], TranslatedError]] = {
    "PRODUCT_NOT_READY": lambda code: TranslatedError(202, {"pending": True}),
    "ITEM_LOGIN_REQUIRED": lambda code: TranslatedError(401, {"relink": True, "reason": code}),
    "INVALID_ACCESS_TOKEN": lambda code: TranslatedError(401, {"error": code}),
}


def _default_policy(code: str) -> TranslatedError:
    return TranslatedError(500, {"error": code})


def _code_from_mapping(payload: Any) -> Optional[str]:
    if not isinstance(payload, Mapping):
        return None
    code = payload.get("error_code")
    if isinstance(code, str) and code.strip():
        return code.strip()
    return None


def extract_payload(upstream_error: Any) -> Any:
    """Best-effort extraction of the raw provider error body."""
    if isinstance(upstream_error, ProviderError):
        return upstream_error.payload
    if isinstance(upstream_error, httpx.HTTPStatusError):
        try:
            return upstream_error.response.json()
        except ValueError:
            return None
    if isinstance(upstream_error, Mapping):
        return upstream_error
    return None


def _log_upstream(where: Optional[str], payload: Any, upstream_error: Any) -> None:
    try:
        rendered = json.dumps(payload, indent=2, default=str) if payload is not None else repr(upstream_error)
        logger.error("[Plaid %s] %s", where or "request", rendered)
    except Exception:  # noqa: BLE001
        pass


def translate(upstream_error: Any, where: Optional[str] = None) -> Tuple[int, Dict[str, Any]]:
    """Map an upstream failure to ``(http_status, response_body)``.

    Total over its input: exceptions, raw mappings and arbitrary garbage all
    produce a response, and the function never raises.
    """
    try:
        payload = extract_payload(upstream_error)
    except Exception:  # noqa: BLE001
        payload = None
    _log_upstream(where, payload, upstream_error)

    code = _code_from_mapping(payload)
    if code is None:
        return TranslatedError(500, {"error": UNKNOWN_ERROR}).as_tuple()
    policy = ERROR_POLICY.get(code, _default_policy)
    return policy(code).as_tuple()
