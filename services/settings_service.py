"""
Settings service: account-wide configuration stored in the settings table
"""
from decimal import Decimal, InvalidOperation
import logging
from supabase import Client

from config.billing_config import DEFAULT_PLATFORM_FEE, PLATFORM_FEE_SETTING_KEY
from config.decorators import execute_query

logger = logging.getLogger(__name__)


class SettingsService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    def get_platform_fee(self) -> Decimal:
        """
        Get the flat per-account platform fee, falling back to the default
        when the setting is missing, malformed or unreadable
        """
        try:
            response = execute_query(
                self.supabase.table("settings")
                .select("value")
                .eq("key", PLATFORM_FEE_SETTING_KEY)
                .limit(1)
            )
        except Exception as e:
            logger.error(f"Error fetching platform fee setting: {str(e)}")
            return DEFAULT_PLATFORM_FEE

        if not response.data:
            return DEFAULT_PLATFORM_FEE

        setting = response.data[0].get("value")
        if not isinstance(setting, dict) or "amount" not in setting:
            logger.warning(f"Malformed platform fee setting: {setting!r}")
            return DEFAULT_PLATFORM_FEE

        try:
            amount = Decimal(str(setting["amount"]))
        except (InvalidOperation, TypeError, ValueError):
            logger.warning(f"Platform fee amount is not a number: {setting['amount']!r}")
            return DEFAULT_PLATFORM_FEE

        if not amount.is_finite() or amount < 0:
            logger.warning(f"Invalid platform fee {amount} ignored")
            return DEFAULT_PLATFORM_FEE
        return amount
