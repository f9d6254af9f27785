from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .config import settings


def _alias(camel: str, snake: str) -> AliasChoices:
    return AliasChoices(camel, snake)


class GatewayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: Optional[str] = Field(default=None, validation_alias=_alias("userId", "user_id"))

    def resolved_user_id(self, default: Optional[str] = None) -> str:
        if self.user_id and self.user_id.strip():
            return self.user_id.strip()
        return default or settings.default_user_id


# Link schemas
class LinkSessionRequest(GatewayRequest):
    pass


class LinkExchangeRequest(GatewayRequest):
    transient_proof: Optional[str] = Field(
        default=None, validation_alias=_alias("transientProof", "public_token")
    )
    institution_label: Optional[str] = Field(
        default=None, validation_alias=_alias("institutionLabel", "institution_name")
    )


class LinkExchangeResponse(BaseModel):
    success: bool = True


# Aggregation schemas
class AccountsRequest(GatewayRequest):
    pass


class TransactionsRequest(GatewayRequest):
    start_date: Optional[str] = Field(default=None, validation_alias=_alias("startDate", "start_date"))
    end_date: Optional[str] = Field(default=None, validation_alias=_alias("endDate", "end_date"))


class AccountsResponse(BaseModel):
    accounts: List[Dict[str, Any]]


class TransactionsResponse(BaseModel):
    transactions: List[Dict[str, Any]]


class HealthResponse(BaseModel):
    status: str
    environment: str
    timestamp: str
