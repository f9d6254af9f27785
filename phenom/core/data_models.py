"""Data models for the aggregation core."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .database import LinkedCredential


class LinkState(str, Enum):
    """States of a single link attempt."""

    START = "start"
    SESSION_CREATED = "session_created"
    EXCHANGED = "exchanged"
    FAILED = "failed"


class QueryKind(str, Enum):
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"


@dataclass(frozen=True)
class LinkSession:
    """Provider-issued token for an in-progress link flow. Never persisted."""

    user_id: str
    link_token: Optional[str]
    expiration: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LinkAttempt:
    user_id: str
    state: LinkState = LinkState.START
    credential: Optional[LinkedCredential] = None


@dataclass(frozen=True)
class CredentialOutcome:
    """Result of querying one credential: records on success, error otherwise."""

    credential: LinkedCredential
    records: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AggregationResult:
    kind: QueryKind
    records: List[Dict[str, Any]] = field(default_factory=list)
    outcomes: List[CredentialOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[CredentialOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    def __len__(self) -> int:
        return len(self.records)
