"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Marketplace Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/marketplace_ledger"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Reconciliation: declared cash may differ from expected by this much
    # before the daily report is flagged.
    CASH_DISCREPANCY_TOLERANCE_CENTS: int = int(
        os.getenv("CASH_DISCREPANCY_TOLERANCE_CENTS", "50")
    )

    # Credits
    RECHARGE_CODE_MAX_AMOUNT_CENTS: int = int(
        os.getenv("RECHARGE_CODE_MAX_AMOUNT_CENTS", "100000")
    )
    CREDIT_MINIMUM_CENTS: int = int(os.getenv("CREDIT_MINIMUM_CENTS", "10000"))
    CREDIT_WARNING_CENTS: int = int(os.getenv("CREDIT_WARNING_CENTS", "15000"))
    LIQUIDATION_PROOF_THRESHOLD_CENTS: int = int(
        os.getenv("LIQUIDATION_PROOF_THRESHOLD_CENTS", "5000")
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls.
    """
    return Settings()
