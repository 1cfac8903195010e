# src/config/settings.py

"""Central configuration for the price tracker."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price tracker."""

    # --- Record store ---
    STORE_BACKEND: str = os.getenv(
        "PRICE_TRACKER_BACKEND", "sqlite"
    )                                   # "sqlite" or "rest"
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"

    # --- Credentials for the headless CLI ---
    DEFAULT_EMAIL: str = os.getenv("PRICE_TRACKER_EMAIL", "")
    DEFAULT_PASSWORD: str = os.getenv("PRICE_TRACKER_PASSWORD", "")

    # --- Price analysis ---
    PRICE_ALERT_THRESHOLD: float = 10.0  # Spread % that raises an alert
    SAVINGS_LOW_MAX: float = 5.0         # Spread % still labelled "Low"
    SAVINGS_MEDIUM_MAX: float = 15.0     # Spread % still labelled "Medium"
    RECENT_PRICES_LIMIT: int = 5         # Dashboard "recent updates" rows
    DATE_FORMAT: str = "%Y-%m-%d"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = Path(
        os.getenv("PRICE_TRACKER_DATA_DIR", str(BASE_DIR / "data"))
    )
    DB_PATH: Path = DATA_DIR / "price_tracker.db"
    CHARTS_DIR: Path = DATA_DIR / "charts"
    LOGS_DIR: Path = BASE_DIR / "logs"
