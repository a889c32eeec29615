"""Revenue aggregation over imported iiko sales.

Works on anything exposing the ``IikoSale`` attributes (ORM rows or
``SalesLineItem`` objects), so dashboards and freshly parsed reports share
the same math. Amounts are NET of discount.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Set

ZERO = Decimal("0")
CENT = Decimal("0.01")


@dataclass
class CategoryBreakdown:
    category: str
    amount: Decimal = ZERO
    quantity: Decimal = ZERO
    order_count: int = 0
    average_check: Decimal = ZERO


@dataclass
class DayBreakdown:
    date: str
    amount: Decimal = ZERO


@dataclass
class HourBreakdown:
    hour: int
    amount: Decimal = ZERO


@dataclass
class TopItem:
    dish_id: str
    dish_name: str
    category: str
    quantity: Decimal = ZERO
    amount: Decimal = ZERO


@dataclass
class RevenueSummary:
    total_revenue: Decimal = ZERO
    total_quantity: Decimal = ZERO
    total_discount: Decimal = ZERO
    order_count: int = 0
    average_check: Decimal = ZERO
    by_category: List[CategoryBreakdown] = field(default_factory=list)
    by_day: List[DayBreakdown] = field(default_factory=list)
    by_hour: List[HourBreakdown] = field(default_factory=list)


def _dec(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def _amount(item: Any) -> Decimal:
    return _dec(item.amount)


def _quantity(item: Any) -> Decimal:
    return _dec(item.quantity)


def _open_time(item: Any) -> Optional[datetime]:
    return getattr(item, "open_time", None)


def average_check(total: Decimal, order_count: int) -> Decimal:
    if order_count <= 0:
        return ZERO
    average = total / order_count
    try:
        return average.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # Too many digits to carry cents
        return average


def order_count(items: Iterable[Any]) -> int:
    """Number of distinct order numbers."""
    return len({item.order_num or "" for item in items})


def by_category(items: Iterable[Any]) -> List[CategoryBreakdown]:
    """Totals per category, highest revenue first. Blank category is its own bucket."""
    groups: Dict[str, CategoryBreakdown] = {}
    orders: Dict[str, Set[str]] = {}
    for item in items:
        category = item.dish_category or ""
        group = groups.get(category)
        if group is None:
            group = groups[category] = CategoryBreakdown(category=category)
            orders[category] = set()
        group.amount += _amount(item)
        group.quantity += _quantity(item)
        orders[category].add(item.order_num or "")

    for category, group in groups.items():
        group.order_count = len(orders[category])
        group.average_check = average_check(group.amount, group.order_count)

    return sorted(groups.values(), key=lambda g: g.amount, reverse=True)


def by_day(items: Iterable[Any]) -> List[DayBreakdown]:
    """Revenue per local calendar day, oldest first."""
    days: Dict[str, Decimal] = {}
    for item in items:
        opened = _open_time(item)
        if opened is None:
            continue
        key = opened.date().isoformat()
        days[key] = days.get(key, ZERO) + _amount(item)
    return [DayBreakdown(date=day, amount=amount) for day, amount in sorted(days.items())]


def by_hour(items: Iterable[Any]) -> List[HourBreakdown]:
    """Revenue per hour of day (0-23), ascending."""
    hours: Dict[int, Decimal] = {}
    for item in items:
        opened = _open_time(item)
        if opened is None:
            continue
        hours[opened.hour] = hours.get(opened.hour, ZERO) + _amount(item)
    return [HourBreakdown(hour=hour, amount=amount) for hour, amount in sorted(hours.items())]


def top_items(items: Iterable[Any], limit: int = 10) -> List[TopItem]:
    """Best sellers by revenue, grouped by dish id (or name when the id is blank)."""
    dishes: Dict[str, TopItem] = {}
    for item in items:
        key = item.dish_id or item.dish_name or ""
        dish = dishes.get(key)
        if dish is None:
            dish = dishes[key] = TopItem(
                dish_id=item.dish_id or "",
                dish_name=item.dish_name or "",
                category=item.dish_category or "",
            )
        dish.quantity += _quantity(item)
        dish.amount += _amount(item)

    ranked = sorted(dishes.values(), key=lambda d: d.amount, reverse=True)
    return ranked[:max(limit, 0)]


def summarize(items: Iterable[Any]) -> RevenueSummary:
    """Everything the revenue dashboard shows for one date range."""
    items = list(items)
    total_revenue = sum((_amount(i) for i in items), ZERO)
    orders = order_count(items)

    return RevenueSummary(
        total_revenue=total_revenue,
        total_quantity=sum((_quantity(i) for i in items), ZERO),
        total_discount=sum((_dec(getattr(i, "discount_sum", 0)) for i in items), ZERO),
        order_count=orders,
        average_check=average_check(total_revenue, orders),
        by_category=by_category(items),
        by_day=by_day(items),
        by_hour=by_hour(items),
    )
