"""
Billing routes: platform fee, billing record sync and the nightly billing job
"""
from fastapi import APIRouter, HTTPException, status, Depends
from datetime import datetime
from typing import Optional
import logging
from supabase import Client

from auth.dependencies import get_current_user, get_supabase, get_now, verify_cron_secret
from services.billing_sync_service import BillingSyncService
from services.settings_service import SettingsService

router = APIRouter(prefix="/billing", tags=["Billing"])
logger = logging.getLogger(__name__)


@router.get("/platform-fee")
async def get_platform_fee(supabase: Client = Depends(get_supabase)):
    """
    Get the platform fee amount (public, it is only a configuration value)
    """
    amount = SettingsService(supabase).get_platform_fee()
    return {"amount": float(amount)}


@router.post("/sync")
async def sync_billing(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    now: datetime = Depends(get_now)
):
    """
    Rebuild the current user's pending billing records
    """
    result = BillingSyncService(supabase).sync_user_billing(current_user["id"], now)
    if not result["success"]:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sync billing records"
        )
    return result


@router.get("/cron/process", dependencies=[Depends(verify_cron_secret)])
async def process_billing(
    supabase: Client = Depends(get_supabase),
    now: datetime = Depends(get_now)
):
    """
    Nightly job: move due billing_active records into billing_history
    """
    try:
        return BillingSyncService(supabase).process_due_records(now.date(), processed_at=now)
    except Exception as e:
        logger.error(f"Error in billing process job: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process billing records"
        )


@router.get("/cron/sync-all", dependencies=[Depends(verify_cron_secret)])
async def sync_all_billing(
    user_id: Optional[str] = None,
    supabase: Client = Depends(get_supabase),
    now: datetime = Depends(get_now)
):
    """
    Rebuild pending billing records for every user with active tools, or for one user
    """
    try:
        result = BillingSyncService(supabase).sync_all_users(now, user_id=user_id)
    except Exception as e:
        logger.error(f"Error in billing sync-all job: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sync billing records"
        )

    if not result["total"]:
        return {"message": "No users with active tools found", **result}
    return {"message": "Sync completed", **result}
