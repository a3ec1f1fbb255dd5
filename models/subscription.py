"""
Subscription model for the My Tools ledger
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime, timezone
from enum import Enum

from config.billing_config import normalize_status
from models.billing import Money

UNKNOWN_TOOL_NAME = "Unknown Tool"


class SubscriptionStatus(str, Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Subscription(BaseModel):
    """
    One tool a user has acquired (a users_tools row).

    Trials must carry a trial_end_date that is not before created_at;
    anything else is rejected here so the billing engine never sees it.
    """
    model_config = {"frozen": True}

    id: str
    tool_id: Optional[str] = None
    name: str = UNKNOWN_TOOL_NAME
    price: Money = Field(..., ge=0)
    status: SubscriptionStatus
    created_at: datetime
    trial_end_date: Optional[datetime] = None
    promo_code: Optional[str] = None
    promo_expiration_date: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        if isinstance(value, SubscriptionStatus):
            return value
        return normalize_status(value)

    @field_validator("created_at", "trial_end_date", "promo_expiration_date")
    @classmethod
    def _assume_utc(cls, value):
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_trial_dates(self):
        if self.status == SubscriptionStatus.TRIAL:
            if self.trial_end_date is None:
                raise ValueError("trial subscription requires trial_end_date")
            if self.trial_end_date < self.created_at:
                raise ValueError("trial_end_date must not be before created_at")
        return self

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED


class CancelRequest(BaseModel):
    tool_id: str = Field(..., description="users_tools id of the subscription to cancel")
