"""
Billing engine for the My Tools account view.

Pure functions over a ledger of Subscription records and an explicit ``now``:
nothing here reads a clock, touches Supabase or mutates a subscription.

The account has a single bill. Its day of month (the *anchor*) is taken from
the subscription that would bill soonest: a trial bills on its
``trial_end_date``, an active subscription on ``created_at`` plus the implicit
trial window. Whenever the anchor day is combined with a month that is too
short for it, the date is clamped to that month's last day.
"""
import calendar
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Iterable, List, Optional

from config.billing_config import TRIAL_PERIOD_DAYS
from models.billing import (
    ActiveToolLine,
    BillingItemType,
    BillingPeriod,
    BillingRecord,
    CurrentCharge,
    ProjectionResult,
    TrialEndingLine,
    ZERO,
)
from models.subscription import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)


def _billable(ledger: Iterable[Subscription]) -> List[Subscription]:
    return [sub for sub in ledger if not sub.is_cancelled]


def _today(now: datetime) -> date:
    return now.date() if isinstance(now, datetime) else now


def effective_billing_date(subscription: Subscription) -> datetime:
    """When this subscription would first be billed on its own."""
    if subscription.status == SubscriptionStatus.TRIAL:
        return subscription.trial_end_date
    return subscription.created_at + timedelta(days=TRIAL_PERIOD_DAYS)


def is_effectively_active(subscription: Subscription, as_of: date) -> bool:
    """Active now, or a trial that will have converted by ``as_of``."""
    if subscription.status == SubscriptionStatus.ACTIVE:
        return True
    if subscription.status == SubscriptionStatus.TRIAL:
        return subscription.trial_end_date.date() <= as_of
    return False


def resolve_billing_anchor(ledger: Iterable[Subscription]) -> Optional[int]:
    """
    Day of month (1-31) the whole account is billed on, or None when there is
    no non-cancelled subscription. Always derived from the ledger passed in.
    """
    billable = _billable(ledger)
    if not billable:
        return None
    earliest = min(effective_billing_date(sub) for sub in billable)
    return earliest.day


def add_months(year: int, month: int, months: int):
    """Shift a (year, month) pair by a number of months."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def anchor_date(year: int, month: int, anchor_day: int) -> date:
    """The anchor day in the given month, clamped to the month's last day."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day, last_day))


def current_monthly_charge(ledger: Iterable[Subscription], platform_fee: Decimal) -> CurrentCharge:
    """What the account is charged right now. Trials are free until they convert."""
    billable = _billable(ledger)
    tools_total = sum(
        (sub.price for sub in billable if sub.status == SubscriptionStatus.ACTIVE),
        ZERO,
    )
    fee_applied = len(billable) > 0
    total = tools_total + (platform_fee if fee_applied else ZERO)
    return CurrentCharge(
        tool_subscriptions_total=tools_total,
        platform_fee_applied=fee_applied,
        platform_fee_amount=platform_fee,
        total=total,
    )


def next_billing_date(anchor_day: int, now: datetime) -> date:
    """Anchor day in the month after ``now``'s month, even if this month's is still ahead."""
    today = _today(now)
    year, month = add_months(today.year, today.month, 1)
    return anchor_date(year, month, anchor_day)


def project_next_cycle(ledger: Iterable[Subscription], now: datetime, platform_fee: Decimal) -> ProjectionResult:
    """
    Simulate the bill on the next anchor occurrence.

    Active subscriptions are billed at full price. A trial is billed at full
    price if its trial ends on or before the next billing date; otherwise it
    is left out of the total but still keeps the platform fee applicable.
    """
    billable = _billable(ledger)
    anchor = resolve_billing_anchor(billable)
    if anchor is None:
        return ProjectionResult()

    today = _today(now)
    billing_date = next_billing_date(anchor, today)
    logger.debug(
        f"Projecting cycle: anchor day {anchor}, this month {anchor_date(today.year, today.month, anchor)}, next {billing_date}"
    )

    active_tools: List[ActiveToolLine] = []
    trials_ending: List[TrialEndingLine] = []
    tools_total = ZERO

    for sub in billable:
        if not is_effectively_active(sub, billing_date):
            continue
        tools_total += sub.price
        if sub.status == SubscriptionStatus.ACTIVE:
            active_tools.append(ActiveToolLine(name=sub.name, price=sub.price))
        else:
            days_until_end = (sub.trial_end_date.date() - today).days
            trials_ending.append(TrialEndingLine(
                name=sub.name,
                price=sub.price,
                trial_end_date=sub.trial_end_date,
                days_until_end=max(days_until_end, 0),
            ))

    # every non-cancelled subscription is still on the account at billing time
    fee_applied = len(billable) > 0
    fee_amount = platform_fee if fee_applied else ZERO

    return ProjectionResult(
        next_billing_date=billing_date,
        tool_subscriptions_total=tools_total,
        platform_fee_applied=fee_applied,
        platform_fee_amount=fee_amount,
        total=tools_total + fee_amount,
        active_tools=active_tools,
        trials_ending=trials_ending,
    )


def calculate_billing_period(anchor_day: int, now: datetime) -> BillingPeriod:
    """
    The billing period ``now`` falls into. On or after this month's anchor
    date the bill is next month's anchor date, before it the bill is this
    month's. The period ends the day before the billing date.
    """
    today = _today(now)
    this_month = anchor_date(today.year, today.month, anchor_day)

    if today >= this_month:
        start = this_month
        year, month = add_months(today.year, today.month, 1)
    else:
        year, month = add_months(today.year, today.month, -1)
        start = anchor_date(year, month, anchor_day)
        year, month = today.year, today.month

    billing_date = anchor_date(year, month, anchor_day)
    return BillingPeriod(
        start=start,
        end=billing_date - timedelta(days=1),
        billing_date=billing_date,
    )


def build_billing_records(
    user_id: str,
    ledger: Iterable[Subscription],
    now: datetime,
    platform_fee: Decimal,
) -> List[BillingRecord]:
    """
    Pending billing_active line items for the current billing period: one per
    subscription billed on the period's billing date, plus the platform fee
    when the account has any non-cancelled subscription.
    """
    billable = _billable(ledger)
    anchor = resolve_billing_anchor(billable)
    if anchor is None:
        return []

    period = calculate_billing_period(anchor, now)
    common = {
        "user_id": user_id,
        "billing_period_start": period.start,
        "billing_period_end": period.end,
        "billing_date": period.billing_date,
    }

    records = [
        BillingRecord(
            **common,
            item_type=BillingItemType.TOOL_SUBSCRIPTION,
            tool_id=sub.tool_id,
            tool_name=sub.name,
            amount=sub.price,
            users_tools_id=sub.id,
        )
        for sub in billable
        if is_effectively_active(sub, period.billing_date)
    ]
    records.append(BillingRecord(
        **common,
        item_type=BillingItemType.PLATFORM_FEE,
        amount=platform_fee,
    ))
    return records
