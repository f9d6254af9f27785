from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger("phenom.backend.config")

DEFAULT_PLAID_ENV = "production"

PLAID_ENVIRONMENTS: Dict[str, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


def _split_csv(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return list(default)
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _resolve_plaid_env(value: Optional[str]) -> str:
    env = (value or DEFAULT_PLAID_ENV).strip().lower()
    if env not in PLAID_ENVIRONMENTS:
        logger.warning(
            "Unknown PLAID_ENV '%s' (expected one of %s); falling back to '%s'.",
            value,
            ", ".join(sorted(PLAID_ENVIRONMENTS)),
            DEFAULT_PLAID_ENV,
        )
        return DEFAULT_PLAID_ENV
    return env


class Settings:
    """Runtime settings shared across the backend application."""

    def __init__(self) -> None:
        self.title: str = "Phenomenal Financial Tracker API"
        self.version: str = "1.0.0"
        self.environment_label: str = os.getenv("ENVIRONMENT_LABEL", "PRODUCTION")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))
        self.cors_origins: List[str] = _split_csv(os.getenv("CORS_ORIGINS"), ["*"])

        self.plaid_client_id: Optional[str] = os.getenv("PLAID_CLIENT_ID")
        self.plaid_secret: Optional[str] = os.getenv("PLAID_SECRET")
        self.plaid_env: str = _resolve_plaid_env(os.getenv("PLAID_ENV"))
        self.plaid_client_name: str = os.getenv("PLAID_CLIENT_NAME", "Phenomenal Financial Tracker")
        self.plaid_products: List[str] = _split_csv(os.getenv("PLAID_PRODUCTS"), ["transactions"])
        self.plaid_country_codes: List[str] = _split_csv(os.getenv("PLAID_COUNTRY_CODES"), ["US"])
        self.plaid_language: str = os.getenv("PLAID_LANGUAGE", "en")

        self.credential_store: str = os.getenv("CREDENTIAL_STORE", "sqlite").lower()
        self.database_path: str = os.getenv("DATABASE_PATH", str(BASE_DIR.parent / "phenom_tokens.db"))

        self.default_user_id: str = os.getenv("DEFAULT_USER_ID", "user-1")
        self.default_institution_label: str = os.getenv("DEFAULT_INSTITUTION_LABEL", "Bank")
        self.default_start_date: str = os.getenv("DEFAULT_START_DATE", "2024-01-01")
        self.transactions_page_size: int = int(os.getenv("TRANSACTIONS_PAGE_SIZE", "500"))

    @property
    def plaid_base_url(self) -> str:
        return PLAID_ENVIRONMENTS.get(self.plaid_env, PLAID_ENVIRONMENTS[DEFAULT_PLAID_ENV])


settings = Settings()
