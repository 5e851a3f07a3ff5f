"""Tests for plans and Stripe event handling."""

from datetime import date

from apps.auth.models import SubscriptionTier
from apps.auth.subscription_service import PLANS, SubscriptionService, can_add_vehicle, get_plan


class TestPlans:
    def test_free_plan(self, user):
        plan = get_plan(user)
        assert plan.tier == SubscriptionTier.FREE
        assert plan.max_vehicles == 1

    def test_premium_plan_unlimited(self, premium_user):
        assert get_plan(premium_user).max_vehicles is None
        assert "Unlimited vehicles" in PLANS[SubscriptionTier.PREMIUM].features

    def test_can_add_vehicle(self, user, premium_user):
        assert can_add_vehicle(user, 0)
        assert not can_add_vehicle(user, 1)
        assert can_add_vehicle(premium_user, 50)

    def test_plain_string_tier(self, user):
        user.subscription = "premium"
        assert get_plan(user).tier == SubscriptionTier.PREMIUM


class TestSubscriptionService:
    def test_checkout_disabled_returns_none(self, session, user, monkeypatch):
        monkeypatch.setattr("apps.auth.subscription_service.settings.ENABLE_SUBSCRIPTION", False)
        assert SubscriptionService(session).create_checkout_session(user, "http://x/ok", "http://x/cancel") is None

    def test_checkout_completed_upgrades_user(self, session, user):
        SubscriptionService(session).dispatch_event({
            "type": "checkout.session.completed",
            "data": {"object": {"client_reference_id": str(user.id), "customer": "cus_123"}},
        })
        session.refresh(user)
        assert user.is_premium
        assert user.stripe_customer_id == "cus_123"
        assert user.subscription_status == "active"

    def test_subscription_deleted_downgrades_user(self, session, premium_user):
        premium_user.stripe_customer_id = "cus_456"
        session.add(premium_user)
        session.commit()

        SubscriptionService(session).dispatch_event({
            "type": "customer.subscription.deleted",
            "data": {"object": {"customer": "cus_456", "current_period_end": 1735689600}},
        })
        session.refresh(premium_user)
        assert not premium_user.is_premium
        assert premium_user.subscription_status == "cancelled"
        assert premium_user.current_period_end == date(2025, 1, 1)

    def test_unknown_customer_ignored(self, session, premium_user):
        SubscriptionService(session).dispatch_event({
            "type": "customer.subscription.deleted",
            "data": {"object": {"customer": "cus_unknown"}},
        })
        session.refresh(premium_user)
        assert premium_user.is_premium

    def test_webhook_without_secret_is_noop(self, session, monkeypatch):
        monkeypatch.setattr("apps.auth.subscription_service.settings.STRIPE_WEBHOOK_SECRET", None)
        assert SubscriptionService(session).handle_webhook(b"{}", "sig") is None
