from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "crypto_gains.db"


class AppSettings(BaseSettings):
    default_wallets: list[str] = []
    fiat_currencies: list[str] = ["EUR", "USD", "GBP", "CHF", "CAD", "AUD", "JPY"]
    long_term_days: int = 365
    lot_epsilon: Decimal = Decimal("1e-12")
    shortfall_epsilon: Decimal = Decimal("1e-9")
    db_file: Path | None = None
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="CRYPTO_GAINS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@cache
def config() -> AppSettings:
    return AppSettings()
