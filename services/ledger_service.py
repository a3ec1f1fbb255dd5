"""
Ledger service: a user's subscriptions (users_tools rows) as validated records
"""
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import logging
from pydantic import ValidationError
from supabase import Client

from config.decorators import execute_query
from models.subscription import Subscription, UNKNOWN_TOOL_NAME

logger = logging.getLogger(__name__)

LEDGER_COLUMNS = """
    id,
    tool_id,
    price,
    status,
    created_at,
    promo_expiration_date,
    trial_end_date,
    tools ( name ),
    promo_codes ( code )
"""


class LedgerError(Exception):
    """Base error for ledger changes requested by a user."""


class SubscriptionNotFoundError(LedgerError):
    pass


class SubscriptionInactiveError(LedgerError):
    pass


def _embedded(value: Any) -> Optional[Dict[str, Any]]:
    # PostgREST embeds a to-one relation as an object, some clients as a list
    if isinstance(value, list):
        return value[0] if value else None
    return value or None


def subscription_from_row(row: Dict[str, Any]) -> Subscription:
    """Build a Subscription from a users_tools row. Raises ValidationError on bad rows."""
    tool = _embedded(row.get("tools"))
    promo = _embedded(row.get("promo_codes"))
    price = row.get("price")
    return Subscription(
        id=str(row["id"]),
        tool_id=row.get("tool_id"),
        name=(tool or {}).get("name") or UNKNOWN_TOOL_NAME,
        price=str(price) if price is not None else None,
        status=row.get("status"),
        created_at=row.get("created_at"),
        trial_end_date=row.get("trial_end_date"),
        promo_code=(promo or {}).get("code"),
        promo_expiration_date=row.get("promo_expiration_date"),
    )


class LedgerService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client

    def parse_rows(self, rows: List[Dict[str, Any]]) -> List[Subscription]:
        """
        Convert rows into Subscription records, rejecting rows that break the
        record invariants (e.g. a trial without a trial end date)
        """
        ledger = []
        for row in rows:
            try:
                ledger.append(subscription_from_row(row))
            except (ValidationError, KeyError) as e:
                logger.error(f"Rejected users_tools row {row.get('id')}: {e}")
        return ledger

    def fetch_ledger(self, user_id: str) -> List[Subscription]:
        """
        Get the user's active and trial subscriptions, newest first
        """
        response = execute_query(
            self.supabase.table("users_tools")
            .select(LEDGER_COLUMNS)
            .eq("user_id", user_id)
            .in_("status", ["active", "trial"])
            .order("created_at", desc=True)
        )
        ledger = self.parse_rows(response.data or [])
        logger.info(f"Loaded {len(ledger)} subscriptions for user {user_id}")
        return ledger

    def cancel_subscription(self, user_id: str, subscription_id: str) -> Dict[str, Any]:
        """
        Inactivate one of the user's subscriptions. Trial dates are cleared
        when a trial is cancelled.
        """
        existing = execute_query(
            self.supabase.table("users_tools")
            .select("id, user_id, status")
            .eq("id", subscription_id)
            .eq("user_id", user_id)
        )
        if not existing.data:
            raise SubscriptionNotFoundError("Tool not found or access denied")

        current_status = existing.data[0]["status"]
        if current_status not in ("active", "trial"):
            raise SubscriptionInactiveError("Tool is already inactive")

        update_data = {
            "status": "inactive",
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if current_status == "trial":
            update_data["trial_start_date"] = None
            update_data["trial_end_date"] = None

        response = execute_query(
            self.supabase.table("users_tools")
            .update(update_data)
            .eq("id", subscription_id)
            .eq("user_id", user_id)
        )
        if not response.data:
            raise LedgerError("Failed to inactivate tool")

        logger.info(f"Inactivated tool {subscription_id} for user {user_id}")
        return response.data[0]
