"""Normalization of iiko report responses.

iiko returns the same sales data in several shapes depending on the endpoint
and the server version. Each shape has one adapter here, and every adapter
produces the same canonical ``SalesLineItem`` so the rest of the code never
sees vendor field names.

Malformed values never abort a batch: numbers default to 0, dimensions to "".
"""

import html
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

DAILY_REPORT_TOP_ITEMS = 20
DAILY_REPORT_ITEM_SAMPLE = 50
RAW_PREVIEW_LENGTH = 1000


class ReportFormat(str, Enum):
    OLAP = "olap"
    DAILY_XML = "daily_xml"
    PASSTHROUGH = "passthrough"


# Candidate keys per logical field, most specific first. Older servers use
# dotted names ("Dish.Id"), newer ones flat names ("DishId").
OLAP_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "dish_id": ("DishId", "Dish.Id"),
    "dish_name": ("DishName", "Dish.Name"),
    "dish_code": ("DishCode", "Dish.Code"),
    "dish_category": ("DishCategory", "Dish.Category"),
    "dish_category_id": ("DishCategory.Id",),
    "dish_group": ("DishGroup", "Dish.Group"),
    "dish_group_id": ("DishGroup.Id",),
    "quantity": ("DishAmountInt", "Amount"),
    "gross": ("DishSumInt", "Sum"),
    "discount": ("DishDiscountSumInt", "Discount"),
    "order_num": ("OrderNum", "Order.Number"),
    "open_time": ("OpenTime", "CloseTime", "OpenDate"),
    "department_id": ("Department.Id",),
    "department_name": ("Department", "Department.Name"),
}

TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%Y-%m-%d",
]


# ============== Canonical shapes ==============

@dataclass
class SalesLineItem:
    """One dish sold in one order, amounts already NET of discount."""

    dish_id: str = ""
    dish_name: str = ""
    dish_code: str = ""
    dish_category: str = ""
    dish_category_id: str = ""
    dish_group: str = ""
    dish_group_id: str = ""
    quantity: Decimal = ZERO
    amount: Decimal = ZERO
    discount_sum: Decimal = ZERO
    gross_amount: Decimal = ZERO
    order_num: str = ""
    open_time: Optional[datetime] = None
    department_id: str = ""
    department_name: str = ""


@dataclass
class ReportSummary:
    total_amount: Decimal = ZERO  # net
    total_quantity: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_gross: Decimal = ZERO


@dataclass
class ParsedReport:
    items: List[SalesLineItem] = field(default_factory=list)
    summary: ReportSummary = field(default_factory=ReportSummary)


@dataclass
class DailyReportItem:
    date: str
    category: str
    dish_name: str
    payment_type: str
    amount: Decimal
    quantity: Decimal


@dataclass
class DailyTopItem:
    dish_name: str
    category: str
    quantity: Decimal
    amount: Decimal


@dataclass
class DailyReport:
    success: bool
    item_count: int = 0
    total_amount: Decimal = ZERO
    total_quantity: Decimal = ZERO
    top_items: List[DailyTopItem] = field(default_factory=list)
    items: List[DailyReportItem] = field(default_factory=list)
    error: Optional[str] = None
    raw_preview: Optional[str] = None


# ============== Field helpers ==============

def to_decimal(value: Any) -> Decimal:
    """Parse a number permissively; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace("\xa0", "").replace(" ", "").replace(",", ".")
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            logger.debug(f"Unparseable number {value!r}, using 0")
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an iiko timestamp, keeping the local wall-clock time."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    text = to_text(value)
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    logger.debug(f"Unparseable timestamp {value!r}")
    return None


def pick(row: Mapping[str, Any], logical_field: str, aliases: Mapping[str, Tuple[str, ...]] = OLAP_FIELD_ALIASES) -> Any:
    """First present, non-empty value among the field's candidate keys."""
    for key in aliases[logical_field]:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


# ============== OLAP (pivot JSON) ==============

def extract_olap_rows(payload: Any) -> List[Mapping[str, Any]]:
    """Rows live under ``data`` or ``rows`` depending on server version."""
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, Mapping):
        rows = payload.get("data") or payload.get("rows") or []
    else:
        rows = []
    return [row for row in rows if isinstance(row, Mapping)]


def parse_olap_row(row: Mapping[str, Any]) -> SalesLineItem:
    gross = to_decimal(pick(row, "gross"))
    discount = to_decimal(pick(row, "discount"))

    return SalesLineItem(
        dish_id=to_text(pick(row, "dish_id")),
        dish_name=to_text(pick(row, "dish_name")),
        dish_code=to_text(pick(row, "dish_code")),
        dish_category=to_text(pick(row, "dish_category")),
        dish_category_id=to_text(pick(row, "dish_category_id")),
        dish_group=to_text(pick(row, "dish_group")),
        dish_group_id=to_text(pick(row, "dish_group_id")),
        quantity=to_decimal(pick(row, "quantity")),
        amount=gross - discount,
        discount_sum=discount,
        gross_amount=gross,
        order_num=to_text(pick(row, "order_num")),
        open_time=parse_timestamp(pick(row, "open_time")),
        department_id=to_text(pick(row, "department_id")),
        department_name=to_text(pick(row, "department_name")),
    )


def parse_olap_response(payload: Any) -> ParsedReport:
    """Normalize an OLAP SALES report.

    The stored amount is NET: ``DishSumInt - DishDiscountSumInt``.
    ``DishSumInt`` alone is gross and must not be persisted as revenue.
    """
    rows = extract_olap_rows(payload)
    if rows:
        logger.debug(f"iiko OLAP first row keys: {list(rows[0].keys())}")
    else:
        logger.info("iiko OLAP: no rows returned")

    report = ParsedReport()
    summary = report.summary
    for row in rows:
        item = parse_olap_row(row)
        report.items.append(item)
        summary.total_gross += item.gross_amount
        summary.total_quantity += item.quantity
        summary.total_discount += item.discount_sum

    summary.total_amount = summary.total_gross - summary.total_discount

    logger.info(
        f"iiko OLAP: {len(rows)} rows, gross={summary.total_gross}, "
        f"discount={summary.total_discount}, net={summary.total_amount}"
    )
    return report


# ============== Daily report (tag soup XML) ==============

_XML_DECLARATION = re.compile(r"<\?xml[^>]*\?>", re.IGNORECASE)
_DOCTYPE = re.compile(r"<!DOCTYPE[^>]*>", re.IGNORECASE)
_DATA_BLOCK = re.compile(r"<data>([\s\S]*?)</data>", re.IGNORECASE)
_INNER_TAG = re.compile(r"<([A-Za-z_][\w.\-]*)>([^<]*)</\1>", re.IGNORECASE)


def _blocks_via_xml_parser(text: str) -> List[Dict[str, str]]:
    body = _DOCTYPE.sub("", _XML_DECLARATION.sub("", text))
    root = ET.fromstring(f"<root>{body}</root>")
    blocks = []
    for element in root.iter():
        if element.tag.lower() != "data":
            continue
        blocks.append({
            child.tag.lower(): (child.text or "").strip() for child in element
        })
    return blocks


def _blocks_via_text_scan(text: str) -> List[Dict[str, str]]:
    blocks = []
    for block in _DATA_BLOCK.findall(text):
        blocks.append({
            tag.lower(): html.unescape(value).strip()
            for tag, value in _INNER_TAG.findall(block)
        })
    return blocks


def extract_data_blocks(text: str) -> List[Dict[str, str]]:
    """Every ``<data>`` block as a lower-cased tag -> text mapping.

    The report is not guaranteed to be well-formed, so a strict parse is
    tried first and a tolerant text scan is used when it fails.
    """
    try:
        return _blocks_via_xml_parser(text)
    except ET.ParseError as e:
        logger.debug(f"Daily report is not well-formed XML ({e}), scanning text")
        return _blocks_via_text_scan(text)


def parse_daily_report_xml(text: str, top_limit: int = DAILY_REPORT_TOP_ITEMS) -> DailyReport:
    """Normalize the "daily report" preset output.

    In this report ``DishDiscountSumInt`` is already the amount after
    discount, so it is taken as NET directly.
    """
    text = text or ""
    if "<data>" not in text.lower():
        return DailyReport(
            success=False,
            error="Report did not return expected XML format",
            raw_preview=text[:RAW_PREVIEW_LENGTH],
        )

    items: List[DailyReportItem] = []
    for block in extract_data_blocks(text):
        dish_name = block.get("dishname", "")
        if not dish_name:
            continue
        items.append(DailyReportItem(
            date=block.get("opendate.typed", ""),
            category=block.get("dishcategory", ""),
            dish_name=dish_name,
            payment_type=block.get("paytypes", ""),
            amount=to_decimal(block.get("dishdiscountsumint")),
            quantity=to_decimal(block.get("dishamountint")),
        ))

    by_dish: Dict[str, DailyTopItem] = {}
    for item in items:
        entry = by_dish.get(item.dish_name)
        if entry is None:
            entry = by_dish[item.dish_name] = DailyTopItem(
                dish_name=item.dish_name, category=item.category, quantity=ZERO, amount=ZERO
            )
        entry.category = item.category
        entry.quantity += item.quantity
        entry.amount += item.amount

    top_items = sorted(by_dish.values(), key=lambda i: i.amount, reverse=True)[:top_limit]

    return DailyReport(
        success=True,
        item_count=len(items),
        total_amount=sum((i.amount for i in items), ZERO),
        total_quantity=sum((i.quantity for i in items), ZERO),
        top_items=top_items,
        items=items[:DAILY_REPORT_ITEM_SAMPLE],
    )


# ============== Departments ==============

def _department_entries(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        return payload.get("corporateItemDtoes") or payload.get("departments") or []
    if isinstance(payload, str) and "<" in payload:
        try:
            root = ET.fromstring(_XML_DECLARATION.sub("", payload).strip())
        except ET.ParseError:
            logger.warning("Departments response is not valid XML")
            return []
        entries = []
        for element in root.iter():
            if element.tag != "corporateItemDto":
                continue
            entries.append({child.tag: (child.text or "").strip() for child in element})
        return entries
    return []


def parse_departments(payload: Any) -> List[Dict[str, str]]:
    """Departments as ``[{id, name}]`` from JSON or XML responses."""
    departments = []
    for entry in _department_entries(payload):
        if not isinstance(entry, Mapping):
            continue
        departments.append({
            "id": to_text(entry.get("id") or entry.get("Id")),
            "name": to_text(entry.get("name") or entry.get("Name")),
        })
    return departments


# ============== Dispatch ==============

ParseResult = Union[ParsedReport, DailyReport, Any]


def parse_report(raw: Any, fmt: ReportFormat, top_limit: int = DAILY_REPORT_TOP_ITEMS) -> ParseResult:
    """Route a raw response to the adapter for its format."""
    if fmt == ReportFormat.OLAP:
        return parse_olap_response(raw)
    if fmt == ReportFormat.DAILY_XML:
        return parse_daily_report_xml(raw if isinstance(raw, str) else str(raw or ""), top_limit)
    if fmt == ReportFormat.PASSTHROUGH:
        return raw
    raise ValueError(f"Unknown report format: {fmt}")
