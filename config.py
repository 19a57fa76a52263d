"""
config.py
Settings loaded once from the environment (.env supported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_FILE = Path(__file__).with_name("van_fees.db")


@dataclass(frozen=True)
class Settings:
    db_file: Path
    business_name: str
    country_code: str
    currency: str
    log_level: str


def load_settings() -> Settings:
    return Settings(
        db_file=Path(os.environ.get("VAN_FEES_DB", str(DEFAULT_DB_FILE))),
        business_name=os.environ.get("VAN_FEES_BUSINESS_NAME", "School Van Fees"),
        country_code=os.environ.get("VAN_FEES_COUNTRY_CODE", "91").strip(),
        currency=os.environ.get("VAN_FEES_CURRENCY", "₹"),
        log_level=os.environ.get("VAN_FEES_LOG_LEVEL", "INFO").upper(),
    )


settings = load_settings()
