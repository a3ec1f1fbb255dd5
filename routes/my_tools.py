"""
My Tools routes: the caller's subscriptions and what they cost
"""
from fastapi import APIRouter, HTTPException, status, Depends
from typing import List
import logging
from datetime import datetime
from supabase import Client

from auth.dependencies import get_current_user, get_supabase, get_now
from models.billing import BillingSummaryResponse
from models.subscription import Subscription, CancelRequest
from services.billing_engine import (
    calculate_billing_period,
    current_monthly_charge,
    project_next_cycle,
    resolve_billing_anchor,
)
from services.ledger_service import (
    LedgerService,
    LedgerError,
    SubscriptionNotFoundError,
    SubscriptionInactiveError,
)
from services.billing_sync_service import BillingSyncService
from services.settings_service import SettingsService

router = APIRouter(prefix="/my-tools", tags=["My Tools"])
logger = logging.getLogger(__name__)


@router.get("", response_model=List[Subscription])
async def get_my_tools(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    """
    Get the current user's active and trial tools
    """
    try:
        return LedgerService(supabase).fetch_ledger(current_user["id"])
    except Exception as e:
        logger.error(f"Error fetching tools for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch tools"
        )


@router.put("")
async def cancel_my_tool(
    request: CancelRequest,
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    now: datetime = Depends(get_now)
):
    """
    Inactivate one of the current user's tools and drop its pending charges
    """
    try:
        tool = LedgerService(supabase).cancel_subscription(current_user["id"], request.tool_id)
        billing = BillingSyncService(supabase).remove_tool_billing_records(current_user["id"], request.tool_id, now)
        if not billing["success"]:
            logger.error(f"Tool {request.tool_id} inactivated but billing records not updated: {billing.get('error')}")
        return {"success": True, "tool": tool, "billing_synced": billing["success"]}

    except SubscriptionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionInactiveError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError as e:
        logger.error(f"Error inactivating tool {request.tool_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to inactivate tool"
        )
    except Exception as e:
        logger.error(f"Unexpected error inactivating tool {request.tool_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error"
        )


@router.get("/billing", response_model=BillingSummaryResponse)
async def get_my_billing(
    current_user: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase),
    now: datetime = Depends(get_now)
):
    """
    Current monthly charge and the next billing cycle preview
    """
    try:
        ledger = LedgerService(supabase).fetch_ledger(current_user["id"])
        platform_fee = SettingsService(supabase).get_platform_fee()
    except Exception as e:
        logger.error(f"Error loading billing inputs for user {current_user['id']}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load billing details"
        )

    billing_day = resolve_billing_anchor(ledger)
    return BillingSummaryResponse(
        billing_day=billing_day,
        current=current_monthly_charge(ledger, platform_fee),
        next_cycle=project_next_cycle(ledger, now, platform_fee),
        billing_period=calculate_billing_period(billing_day, now) if billing_day else None,
    )
