"""Spending analytics, recomputed from a user's parts on every request.

Nothing here is persisted. Amounts are summed as cents-exact ``Decimal`` so
the breakdowns partition the totals:

    total_spent == sum(spending_by_category.values())
    total_parts == sum(parts_by_category.values())
    len(spending_by_month) == 12, oldest month first, current month last

``to_dict()`` converts amounts to floats for JSON.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session

from apps.garage.models import Part, PartCategory
from apps.garage.services import GarageService

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MONTHS_TRACKED = 12
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class Analytics:
    total_spent: Decimal = ZERO
    total_parts: int = 0
    average_part_cost: Decimal = ZERO
    spending_by_category: Dict[str, Decimal] = field(default_factory=dict)
    parts_by_category: Dict[str, int] = field(default_factory=dict)
    spending_by_month: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_spent": float(self.total_spent),
            "total_parts": self.total_parts,
            "average_part_cost": float(self.average_part_cost),
            "spending_by_category": {k: float(v) for k, v in self.spending_by_category.items()},
            "parts_by_category": self.parts_by_category,
            "spending_by_month": [{**m, "amount": float(m["amount"])} for m in self.spending_by_month],
        }


def month_window(today: date, months: int = MONTHS_TRACKED) -> List[date]:
    """First day of each of the last ``months`` months, oldest first."""
    window = []
    for i in range(months - 1, -1, -1):
        index = today.year * 12 + (today.month - 1) - i
        window.append(date(index // 12, index % 12 + 1, 1))
    return window


def compute_analytics(parts: Iterable[Part], today: Optional[date] = None) -> Analytics:
    today = today or date.today()
    parts = list(parts)

    spending_by_category: Dict[str, Decimal] = {}
    parts_by_category: Dict[str, int] = {}
    monthly: Dict[tuple, Decimal] = {}
    for part in parts:
        amount = to_money(part.total_cost)
        key = PartCategory(part.category).value
        spending_by_category[key] = spending_by_category.get(key, ZERO) + amount
        parts_by_category[key] = parts_by_category.get(key, 0) + 1

        bucket = (part.date.year, part.date.month)
        monthly[bucket] = monthly.get(bucket, ZERO) + amount

    total_spent = sum(spending_by_category.values(), ZERO)
    total_parts = len(parts)

    spending_by_month = [
        {"month": MONTH_ABBR[start.month - 1], "year": start.year, "amount": monthly.get((start.year, start.month), ZERO)}
        for start in month_window(today)
    ]

    return Analytics(
        total_spent=total_spent,
        total_parts=total_parts,
        average_part_cost=(total_spent / total_parts).quantize(CENT, rounding=ROUND_HALF_UP) if total_parts > 0 else ZERO,
        spending_by_category=spending_by_category,
        parts_by_category=parts_by_category,
        spending_by_month=spending_by_month,
    )


class AnalyticsService:
    def __init__(self, session: Session):
        self.garage = GarageService(session)

    def for_user(self, user_id: int, vehicle_id=None, today: Optional[date] = None) -> Analytics:
        parts = self.garage.list_parts(user_id, vehicle_id=vehicle_id)
        return compute_analytics(parts, today)
