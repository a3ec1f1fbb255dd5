from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError

from models.subscription import Subscription, SubscriptionStatus, UNKNOWN_TOOL_NAME


def _row(**overrides):
    row = {
        "id": "sub-1",
        "price": "9.99",
        "status": "active",
        "created_at": "2026-03-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row


class TestSubscription:
    def test_active_subscription_defaults(self):
        sub = Subscription(**_row())
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.price == Decimal("9.99")
        assert sub.name == UNKNOWN_TOOL_NAME
        assert sub.trial_end_date is None

    def test_inactive_is_read_as_cancelled(self):
        sub = Subscription(**_row(status="inactive"))
        assert sub.status == SubscriptionStatus.CANCELLED
        assert sub.is_cancelled

    def test_status_is_case_insensitive(self):
        assert Subscription(**_row(status="Trial", trial_end_date="2026-03-08T10:00:00Z")).status == SubscriptionStatus.TRIAL

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValidationError):
            Subscription(**_row(status="paused"))

    def test_trial_requires_trial_end_date(self):
        with pytest.raises(ValidationError, match="trial_end_date"):
            Subscription(**_row(status="trial"))

    def test_trial_cannot_end_before_it_starts(self):
        with pytest.raises(ValidationError, match="before created_at"):
            Subscription(**_row(status="trial", trial_end_date="2026-02-20T10:00:00+00:00"))

    def test_negative_price_is_rejected(self):
        with pytest.raises(ValidationError):
            Subscription(**_row(price="-1"))

    def test_naive_timestamps_are_utc(self):
        sub = Subscription(**_row(created_at=datetime(2026, 3, 1, 10, 0)))
        assert sub.created_at.tzinfo == timezone.utc

    def test_promo_fields_pass_through(self):
        sub = Subscription(**_row(promo_code="SPRING", promo_expiration_date="2026-06-01T00:00:00Z"))
        assert sub.promo_code == "SPRING"
        assert sub.promo_expiration_date == datetime(2026, 6, 1, tzinfo=timezone.utc)

    def test_json_price_is_a_number(self):
        assert Subscription(**_row()).model_dump(mode="json")["price"] == 9.99
