"""
Subscription plan catalog
Defined at deploy time; never read from the record store
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SubscriptionPlan:
    id: str
    name: str
    price: int          # whole currency units
    duration_days: int
    features: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.price <= 0:
            raise ValueError(f"Plan {self.id} price must be positive")
        if self.duration_days <= 0:
            raise ValueError(f"Plan {self.id} duration must be positive")


PLAN_CATALOG: Tuple[SubscriptionPlan, ...] = (
    SubscriptionPlan(
        id="monthly",
        name="Monthly",
        price=300,
        duration_days=30,
        features=(
            "Daily newspaper delivery",
            "Access to e-paper",
            "Monthly billing",
            "Cancel anytime",
        ),
    ),
    SubscriptionPlan(
        id="quarterly",
        name="Quarterly",
        price=850,
        duration_days=90,
        features=(
            "Daily newspaper delivery",
            "Access to e-paper",
            "Quarterly billing",
            "5% discount on regular price",
            "Cancel anytime",
        ),
    ),
    SubscriptionPlan(
        id="yearly",
        name="Yearly",
        price=3200,
        duration_days=365,
        features=(
            "Daily newspaper delivery",
            "Access to e-paper",
            "Annual billing",
            "10% discount on regular price",
            "Premium customer support",
            "Cancel anytime",
        ),
    ),
)
