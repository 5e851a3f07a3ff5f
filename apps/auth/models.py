from typing import Optional
from enum import Enum
from sqlmodel import SQLModel, Field
from datetime import datetime, date

from apps.core.utils import utcnow

class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    external_id: Optional[str] = Field(default=None, index=True) # Auth0 Sub ID
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)

    # Profile Fields
    name: Optional[str] = None
    profile_image: Optional[str] = None # Public URL of uploaded photo

    # Monetization
    subscription: SubscriptionTier = Field(default=SubscriptionTier.FREE)
    subscription_status: str = Field(default="active") # active, cancelled, expired
    stripe_customer_id: Optional[str] = None
    current_period_end: Optional[date] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email.split("@")[0] or "User"

    @property
    def is_premium(self) -> bool:
        return self.subscription == SubscriptionTier.PREMIUM
