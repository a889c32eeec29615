"""Tests for revenue aggregation over imported sales."""

import pytest
from datetime import datetime
from decimal import Decimal

from app.services.iiko import aggregator
from app.services.iiko.normalizer import SalesLineItem


def sale(
    amount,
    category="BAR",
    order_num="1",
    quantity=1,
    dish_id="d-1",
    dish_name="Beer",
    open_time=datetime(2024, 3, 1, 12, 0),
    discount=0,
) -> SalesLineItem:
    return SalesLineItem(
        dish_id=dish_id,
        dish_name=dish_name,
        dish_category=category,
        quantity=Decimal(str(quantity)),
        amount=Decimal(str(amount)),
        discount_sum=Decimal(str(discount)),
        order_num=order_num,
        open_time=open_time,
    )


class TestSummary:
    """Totals and average check."""

    def test_no_items(self):
        summary = aggregator.summarize([])

        assert summary.total_revenue == 0
        assert summary.total_quantity == 0
        assert summary.order_count == 0
        assert summary.average_check == 0
        assert summary.by_category == []
        assert summary.by_day == []
        assert summary.by_hour == []

    def test_totals(self):
        items = [
            sale(100, order_num="1", quantity=2, discount=10),
            sale(50, order_num="1", quantity=1),
            sale(30, order_num="2", quantity="0.5", discount=5),
        ]

        summary = aggregator.summarize(items)

        assert summary.total_revenue == Decimal("180")
        assert summary.total_quantity == Decimal("3.5")
        assert summary.total_discount == Decimal("15")
        assert summary.order_count == 2
        assert summary.average_check == Decimal("90.00")

    def test_average_check_rounds_to_cents(self):
        items = [sale(100, order_num=str(n)) for n in range(3)]

        summary = aggregator.summarize(items)

        assert summary.average_check == Decimal("33.33")

    def test_huge_amount_does_not_abort_summary(self):
        summary = aggregator.summarize([sale("1e40")])

        assert summary.total_revenue == Decimal("1e40")
        assert summary.average_check == Decimal("1e40")
        assert summary.by_category[0].average_check == Decimal("1e40")

    def test_blank_order_numbers_count_as_one_order(self):
        items = [sale(10, order_num=""), sale(20, order_num="")]
        assert aggregator.order_count(items) == 1

    def test_works_with_plain_numbers(self):
        class Row:
            dish_id = "d-1"
            dish_name = "Beer"
            dish_category = "BAR"
            quantity = 2
            amount = 12.5
            discount_sum = None
            order_num = "1"
            open_time = datetime(2024, 3, 1, 9, 30)

        summary = aggregator.summarize([Row()])

        assert summary.total_revenue == Decimal("12.5")
        assert summary.total_discount == 0


class TestBreakdowns:
    """Per-category, per-day and per-hour revenue."""

    def test_by_category_sorted_by_amount_desc(self):
        items = [
            sale(100, category="BAR"),
            sale(300, category="KITCHEN", order_num="2"),
            sale(50, category="DESSERT", order_num="3"),
            sale(250, category="BAR", order_num="4"),
        ]

        categories = aggregator.by_category(items)

        assert [c.category for c in categories] == ["BAR", "KITCHEN", "DESSERT"]
        bar = categories[0]
        assert bar.amount == Decimal("350")
        assert bar.order_count == 2
        assert bar.average_check == Decimal("175.00")

    def test_blank_category_is_its_own_bucket(self):
        items = [sale(10, category=""), sale(20, category=None), sale(5, category="BAR")]

        categories = aggregator.by_category(items)

        blank = next(c for c in categories if c.category == "")
        assert blank.amount == Decimal("30")
        assert len(categories) == 2

    def test_by_day_ascending(self):
        items = [
            sale(10, open_time=datetime(2024, 3, 3, 10)),
            sale(20, open_time=datetime(2024, 3, 1, 23, 59)),
            sale(5, open_time=datetime(2024, 3, 3, 18)),
        ]

        days = aggregator.by_day(items)

        assert [(d.date, d.amount) for d in days] == [
            ("2024-03-01", Decimal("20")),
            ("2024-03-03", Decimal("15")),
        ]

    def test_by_hour_ascending(self):
        items = [
            sale(10, open_time=datetime(2024, 3, 1, 21, 5)),
            sale(20, open_time=datetime(2024, 3, 2, 9, 40)),
            sale(30, open_time=datetime(2024, 3, 1, 21, 55)),
        ]

        hours = aggregator.by_hour(items)

        assert [(h.hour, h.amount) for h in hours] == [(9, Decimal("20")), (21, Decimal("40"))]

    def test_items_without_time_skipped_in_time_breakdowns(self):
        items = [sale(10, open_time=None), sale(20)]

        assert sum(d.amount for d in aggregator.by_day(items)) == Decimal("20")
        assert sum(h.amount for h in aggregator.by_hour(items)) == Decimal("20")


class TestTopItems:
    """Best sellers."""

    def test_ranked_by_amount(self):
        items = [
            sale(100, dish_id="beer", dish_name="Beer", quantity=4),
            sale(300, dish_id="steak", dish_name="Steak", category="KITCHEN"),
            sale(150, dish_id="beer", dish_name="Beer", quantity=6),
        ]

        top = aggregator.top_items(items)

        assert [t.dish_id for t in top] == ["steak", "beer"]
        assert top[1].amount == Decimal("250")
        assert top[1].quantity == Decimal("10")
        assert top[0].category == "KITCHEN"

    def test_limit(self):
        items = [sale(n, dish_id=f"d-{n}", dish_name=f"Dish {n}") for n in range(1, 16)]

        top = aggregator.top_items(items, limit=10)

        assert len(top) == 10
        assert top[0].amount == Decimal("15")

    def test_grouped_by_name_when_id_missing(self):
        items = [sale(10, dish_id="", dish_name="Tea"), sale(15, dish_id="", dish_name="Tea")]

        top = aggregator.top_items(items)

        assert len(top) == 1
        assert top[0].amount == Decimal("25")

    @pytest.mark.parametrize("limit", [0, -5])
    def test_non_positive_limit(self, limit):
        assert aggregator.top_items([sale(10)], limit=limit) == []
