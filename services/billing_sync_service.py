"""
Billing sync service: keeps billing_active in step with a user's ledger and
moves due records into billing_history
"""
from typing import Dict, Any, Optional
from datetime import date, datetime, timezone
import logging
from supabase import Client

from config.decorators import execute_query
from services.billing_engine import build_billing_records
from services.ledger_service import LedgerService
from services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class BillingSyncService:
    def __init__(self, supabase_client: Client):
        self.supabase = supabase_client
        self.ledger_service = LedgerService(supabase_client)
        self.settings_service = SettingsService(supabase_client)

    def sync_user_billing(self, user_id: str, now: datetime) -> Dict[str, Any]:
        """
        Replace the user's pending billing_active rows for the current billing
        period with records rebuilt from the live ledger
        """
        try:
            ledger = self.ledger_service.fetch_ledger(user_id)
            platform_fee = self.settings_service.get_platform_fee()
            records = build_billing_records(user_id, ledger, now, platform_fee)

            if not records:
                # No active tools, clear all billing_active records for this user
                execute_query(self.supabase.table("billing_active").delete().eq("user_id", user_id))
                logger.info(f"Cleared billing records for user {user_id}")
                return {"success": True}

            period_start = records[0].billing_period_start.isoformat()
            period_end = records[0].billing_period_end.isoformat()
            execute_query(
                self.supabase.table("billing_active")
                .delete()
                .eq("user_id", user_id)
                .eq("billing_period_start", period_start)
                .eq("billing_period_end", period_end)
            )
            execute_query(
                self.supabase.table("billing_active").insert([record.to_row() for record in records])
            )

            logger.info(f"Synced {len(records)} billing records for user {user_id} ({period_start} - {period_end})")
            return {"success": True}

        except Exception as e:
            logger.error(f"Error syncing billing for user {user_id}: {str(e)}")
            return {"success": False, "error": str(e)}

    def remove_tool_billing_records(self, user_id: str, users_tools_id: str, now: datetime) -> Dict[str, Any]:
        """
        Drop every pending billing_active row of one subscription, then
        re-sync so the platform fee follows the remaining tools
        """
        try:
            execute_query(
                self.supabase.table("billing_active")
                .delete()
                .eq("user_id", user_id)
                .eq("users_tools_id", users_tools_id)
            )
        except Exception as e:
            logger.error(f"Error removing billing records of tool {users_tools_id}: {str(e)}")
            return {"success": False, "error": str(e)}

        logger.info(f"Removed billing records of tool {users_tools_id} for user {user_id}")
        return self.sync_user_billing(user_id, now)

    def sync_all_users(self, now: datetime, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Sync one user, or every user holding an active or trial tool
        """
        if user_id:
            user_ids = [user_id]
        else:
            response = execute_query(
                self.supabase.table("users_tools")
                .select("user_id")
                .in_("status", ["active", "trial"])
                .order("user_id")
            )
            user_ids = list(dict.fromkeys(row["user_id"] for row in response.data or []))

        errors = []
        for current_id in user_ids:
            result = self.sync_user_billing(current_id, now)
            if not result["success"]:
                errors.append({"user_id": current_id, "error": result.get("error", "Unknown error")})

        logger.info(f"Synced billing for {len(user_ids) - len(errors)}/{len(user_ids)} users")
        summary = {
            "total": len(user_ids),
            "successful": len(user_ids) - len(errors),
            "failed": len(errors),
        }
        if errors:
            summary["errors"] = errors
        return summary

    def process_due_records(self, today: date, processed_at: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Move pending billing_active records due on or before today into
        billing_history
        """
        processed_at = processed_at or datetime.now(timezone.utc)
        today_iso = today.isoformat()

        response = execute_query(
            self.supabase.table("billing_active")
            .select("*")
            .lte("billing_date", today_iso)
            .eq("status", "pending")
        )
        due_records = response.data or []

        if not due_records:
            return {"message": "No records to process", "count": 0, "date": today_iso}

        stamp = processed_at.isoformat()
        history_records = [
            {
                "user_id": record["user_id"],
                "billing_period_start": record["billing_period_start"],
                "billing_period_end": record["billing_period_end"],
                "billing_date": record["billing_date"],
                "item_type": record["item_type"],
                "tool_id": record.get("tool_id"),
                "tool_name": record.get("tool_name"),
                "amount": record["amount"],
                "status": "processed",
                "users_tools_id": record.get("users_tools_id"),
                "processed_at": stamp,
                "created_at": record.get("created_at"),
                "updated_at": stamp,
                "payment_intent_id": None,
                "invoice_id": None,
                "notes": None,
            }
            for record in due_records
        ]

        due_ids = [record["id"] for record in due_records]
        execute_query(self.supabase.table("billing_history").insert(history_records))
        try:
            execute_query(self.supabase.table("billing_active").delete().in_("id", due_ids))
        except Exception as e:
            # history already holds these rows; leaving them in billing_active bills them again next run
            logger.error(f"Moved billing records {due_ids} to history but could not remove them from billing_active: {str(e)}")
            raise

        logger.info(f"Processed {len(due_records)} billing records due by {today_iso}")
        return {
            "message": f"Successfully processed {len(due_records)} billing records",
            "count": len(due_records),
            "date": today_iso,
            "records": [
                {
                    "id": record["id"],
                    "user_id": record["user_id"],
                    "item_type": record["item_type"],
                    "amount": record["amount"],
                }
                for record in due_records
            ],
        }
