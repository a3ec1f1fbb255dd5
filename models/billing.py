"""
Billing result models: current charge, next-cycle projection, billing period
and the pending billing_active line items
"""
from pydantic import BaseModel, Field, PlainSerializer
from typing import Annotated, Optional, List
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0")

# Decimal internally, plain number in JSON responses and Supabase rows
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class BillingItemType(str, Enum):
    TOOL_SUBSCRIPTION = "tool_subscription"
    PLATFORM_FEE = "platform_fee"


class CurrentCharge(BaseModel):
    model_config = {"frozen": True}

    tool_subscriptions_total: Money = ZERO
    platform_fee_applied: bool = False
    platform_fee_amount: Money = ZERO  # configured fee, charged only when applied
    total: Money = ZERO


class ActiveToolLine(BaseModel):
    model_config = {"frozen": True}

    name: str
    price: Money


class TrialEndingLine(BaseModel):
    model_config = {"frozen": True}

    name: str
    price: Money
    trial_end_date: datetime
    days_until_end: int = Field(..., ge=0)


class ProjectionResult(BaseModel):
    model_config = {"frozen": True}

    next_billing_date: Optional[date] = None
    tool_subscriptions_total: Money = ZERO
    platform_fee_applied: bool = False
    platform_fee_amount: Money = ZERO  # fee charged in that cycle
    total: Money = ZERO
    active_tools: List[ActiveToolLine] = []
    trials_ending: List[TrialEndingLine] = []


class BillingPeriod(BaseModel):
    model_config = {"frozen": True}

    start: date
    end: date
    billing_date: date


class BillingRecord(BaseModel):
    """A pending row of the billing_active table."""
    user_id: str
    billing_period_start: date
    billing_period_end: date
    billing_date: date
    item_type: BillingItemType
    tool_id: Optional[str] = None
    tool_name: Optional[str] = None
    amount: Money
    status: str = "pending"
    users_tools_id: Optional[str] = None

    def to_row(self) -> dict:
        """Serialize for a Supabase insert (ISO dates, numeric amount)."""
        return self.model_dump(mode="json")


class BillingSummaryResponse(BaseModel):
    billing_day: Optional[int] = None
    current: CurrentCharge
    next_cycle: ProjectionResult
    billing_period: Optional[BillingPeriod] = None
