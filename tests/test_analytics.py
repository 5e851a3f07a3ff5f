"""Tests for spending analytics."""

from datetime import date
from decimal import Decimal

import pytest

from apps.analytics.services import AnalyticsService, MONTH_ABBR, compute_analytics, month_window
from apps.garage.models import Part, PartCategory
from apps.garage.services import GarageService


def _part(name, category, total, when, vehicle_id=1):
    return Part(vehicle_id=vehicle_id, name=name, category=category, cost=total, total_cost=total, date=when)


class TestMonthWindow:
    def test_twelve_months_oldest_first(self):
        window = month_window(date(2024, 6, 20))
        assert len(window) == 12
        assert window[0] == date(2023, 7, 1)
        assert window[-1] == date(2024, 6, 1)

    def test_crosses_year_boundary(self):
        window = month_window(date(2025, 1, 5), months=3)
        assert window == [date(2024, 11, 1), date(2024, 12, 1), date(2025, 1, 1)]


class TestComputeAnalytics:
    @pytest.fixture
    def parts(self):
        return [
            _part("Intake", PartCategory.ENGINE, 350, date(2024, 6, 2)),
            _part("Downpipe", PartCategory.EXHAUST, 600, date(2024, 6, 18)),
            _part("Tune", PartCategory.ENGINE, 500, date(2024, 4, 1)),
            _part("Old seats", PartCategory.INTERIOR, 200, date(2022, 1, 1)),
        ]

    def test_totals(self, parts):
        result = compute_analytics(parts, today=date(2024, 6, 30))
        assert result.total_spent == 1650
        assert result.total_parts == 4
        assert result.average_part_cost == 412.5

    def test_category_breakdown_sums_to_total(self, parts):
        result = compute_analytics(parts, today=date(2024, 6, 30))
        assert result.spending_by_category == {"engine": 850, "exhaust": 600, "interior": 200}
        assert result.parts_by_category == {"engine": 2, "exhaust": 1, "interior": 1}
        assert sum(result.spending_by_category.values()) == result.total_spent
        assert sum(result.parts_by_category.values()) == result.total_parts

    def test_monthly_spending(self, parts):
        months = compute_analytics(parts, today=date(2024, 6, 30)).spending_by_month
        assert len(months) == 12
        assert months[-1] == {"month": "Jun", "year": 2024, "amount": 950}
        assert months[-3] == {"month": "Apr", "year": 2024, "amount": 500}
        assert months[0]["month"] == "Jul"
        # Parts older than the window count toward totals only
        assert sum(m["amount"] for m in months) == 1450

    def test_same_month_of_previous_year_excluded(self):
        parts = [_part("Wheels", PartCategory.WHEELS, 1200, date(2023, 6, 10))]
        months = compute_analytics(parts, today=date(2024, 6, 1)).spending_by_month
        assert all(m["amount"] == 0 for m in months)

    def test_no_parts(self):
        result = compute_analytics([], today=date(2024, 6, 30))
        assert result.total_spent == 0
        assert result.average_part_cost == 0
        assert result.spending_by_category == {}
        assert [m["month"] for m in result.spending_by_month] == MONTH_ABBR[6:] + MONTH_ABBR[:6]

    def test_cent_amounts_partition_exactly(self):
        parts = [
            _part("Muffler", PartCategory.EXHAUST, 55.29, date(2024, 6, 1)),
            _part("Gasket", PartCategory.ENGINE, 34.57, date(2024, 6, 2)),
            _part("Tips", PartCategory.EXHAUST, 67.68, date(2024, 5, 3)),
            _part("Sensor", PartCategory.ENGINE, 76.09, date(2024, 5, 4)),
        ]
        result = compute_analytics(parts, today=date(2024, 6, 30))

        assert result.total_spent == Decimal("233.63")
        assert sum(result.spending_by_category.values()) == result.total_spent
        assert sum(m["amount"] for m in result.spending_by_month) == result.total_spent
        assert result.average_part_cost == Decimal("58.41")

        data = result.to_dict()
        assert data["total_spent"] == 233.63
        assert data["spending_by_category"] == {"exhaust": 122.97, "engine": 110.66}
        assert data["spending_by_month"][-1]["amount"] == 89.86

    def test_to_dict(self, parts):
        data = compute_analytics(parts, today=date(2024, 6, 30)).to_dict()
        assert set(data) == {
            "total_spent", "total_parts", "average_part_cost",
            "spending_by_category", "parts_by_category", "spending_by_month",
        }


class TestAnalyticsService:
    def test_vehicle_filter(self, session, storage, premium_user, vehicle_form, make_part_form):
        garage = GarageService(session)
        civic = garage.create_vehicle(premium_user, vehicle_form)
        miata = garage.create_vehicle(premium_user, vehicle_form.model_copy(update={"name": "Miata"}))
        garage.create_part(premium_user.id, make_part_form(civic.id))
        garage.create_part(premium_user.id, make_part_form(miata.id, name="Roll bar", category="exterior",
                                                           cost=700, installation_cost=None))

        service = AnalyticsService(session)
        assert service.for_user(premium_user.id).total_spent == 1050
        assert service.for_user(premium_user.id, vehicle_id=miata.id).total_spent == 700
        assert service.for_user(premium_user.id, vehicle_id=str(civic.id)).total_parts == 1
