# config/billing_config.py

import os
from decimal import Decimal
from typing import Dict

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PLATFORM_FEE = Decimal(os.getenv("DEFAULT_PLATFORM_FEE", "5.00"))
TRIAL_PERIOD_DAYS = int(os.getenv("TRIAL_PERIOD_DAYS", "7"))  # implicit trial window for active tools
PLATFORM_FEE_SETTING_KEY = "platform_fee"
CRON_SECRET = os.getenv("CRON_SECRET")
SUPABASE_RETRY_ATTEMPTS = int(os.getenv("SUPABASE_RETRY_ATTEMPTS", "3"))


# Stored users_tools.status values and how the billing engine reads them
STATUS_ALIASES: Dict[str, str] = {
    "trial": "trial",
    "active": "active",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "inactive": "cancelled",
}


def normalize_status(raw_status: str) -> str:
    """Map a stored status onto trial/active/cancelled. Unknown values stay as-is."""
    if raw_status is None:
        return raw_status
    key = str(raw_status).strip().lower()
    return STATUS_ALIASES.get(key, key)
