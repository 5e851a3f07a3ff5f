import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import stripe
from sqlmodel import Session, select
from apps.auth.models import User, SubscriptionTier
from config import settings

logger = logging.getLogger(__name__)

stripe.api_key = settings.STRIPE_SECRET_KEY

@dataclass
class Plan:
    tier: SubscriptionTier
    max_vehicles: Optional[int] # None means unlimited
    features: List[str] = field(default_factory=list)

PLANS = {
    SubscriptionTier.FREE: Plan(
        tier=SubscriptionTier.FREE,
        max_vehicles=settings.FREE_VEHICLE_LIMIT,
        features=["Track parts and costs", "Spending analytics"],
    ),
    SubscriptionTier.PREMIUM: Plan(
        tier=SubscriptionTier.PREMIUM,
        max_vehicles=None,
        features=[
            "Unlimited vehicles",
            "Cloud sync across devices",
            "Advanced analytics",
        ],
    ),
}

def get_plan(user: User) -> Plan:
    return PLANS[SubscriptionTier(user.subscription)]

def can_add_vehicle(user: User, current_count: int) -> bool:
    plan = get_plan(user)
    return plan.max_vehicles is None or current_count < plan.max_vehicles

class SubscriptionService:
    def __init__(self, session: Session):
        self.session = session

    def create_checkout_session(self, user: User, success_url: str, cancel_url: str) -> Optional[str]:
        if not settings.ENABLE_SUBSCRIPTION or not settings.STRIPE_PRICE_ID_PREMIUM:
            return None

        try:
            checkout_session = stripe.checkout.Session.create(
                customer_email=user.email,
                payment_method_types=['card'],
                line_items=[
                    {
                        'price': settings.STRIPE_PRICE_ID_PREMIUM,
                        'quantity': 1,
                    },
                ],
                mode='subscription',
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=str(user.id)
            )
            return checkout_session.url
        except stripe.StripeError as e:
            logger.error("Stripe checkout failed for user %s: %s", user.id, e)
            return None

    def handle_webhook(self, payload: bytes, sig_header: str) -> Optional[str]:
        """Verify and apply a Stripe event; returns its type, or None when webhooks are unconfigured."""
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.warning("STRIPE_WEBHOOK_SECRET not set, webhook skipped")
            return None

        try:
            event = stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )
        except ValueError:
            raise ValueError("Invalid payload")
        except stripe.SignatureVerificationError:
            raise ValueError("Invalid signature")

        self.dispatch_event(event)
        return event["type"]

    def dispatch_event(self, event):
        obj = event['data']['object']
        if event['type'] == 'checkout.session.completed':
            self._fulfill_checkout(obj)
        elif event['type'] == 'customer.subscription.deleted':
            self._cancel_subscription(obj)
        elif event['type'] == 'invoice.payment_failed':
            logger.warning("Payment failed for customer %s", obj.get('customer'))

    def _fulfill_checkout(self, session):
        user_id = session.get('client_reference_id')
        customer_id = session.get('customer')

        if user_id:
            user = self.session.get(User, int(user_id))
            if user:
                user.stripe_customer_id = customer_id
                user.subscription = SubscriptionTier.PREMIUM
                user.subscription_status = 'active'
                self.session.add(user)
                self.session.commit()
                logger.info("User %s upgraded to premium", user.id)

    def _cancel_subscription(self, subscription):
        customer_id = subscription.get('customer')
        if not customer_id:
            return
        user = self.session.exec(select(User).where(User.stripe_customer_id == customer_id)).first()
        if user:
            user.subscription = SubscriptionTier.FREE
            user.subscription_status = 'cancelled'
            period_end = subscription.get('current_period_end')
            if period_end:
                user.current_period_end = datetime.fromtimestamp(period_end, tz=timezone.utc).date()
            self.session.add(user)
            self.session.commit()
            logger.info("User %s downgraded to free", user.id)
