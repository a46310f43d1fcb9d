"""
Order Aggregator: read-only statistics over orders and the product catalog.

Everything here is a pure function of its arguments. ``now`` is taken as a
parameter so that windows (today, trailing months, weeks) are reproducible.
"""
import calendar
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from database import as_utc, utcnow

TREND_MONTHS = 6
DASHBOARD_TOP = 5


def percent_of_max(values: Sequence[float]) -> List[float]:
    top = max(values, default=0)
    if not top:
        return [0.0 for _ in values]
    return [round(v / top * 100, 1) for v in values]


def _percent_of_total(value: float, total: float) -> float:
    return round(value / total * 100, 1) if total else 0.0


def _with_percentages(rows: List[dict], field: str) -> List[dict]:
    for row, pct in zip(rows, percent_of_max([r[field] for r in rows])):
        row["percentage"] = pct
    return rows


def _order_date(order: dict) -> Optional[datetime]:
    return as_utc(order.get("date"))


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _shift_month(year: int, month: int, delta: int):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _months_back(moment: datetime, months: int) -> datetime:
    year, month = _shift_month(moment.year, moment.month, -months)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _item_revenue(item: dict) -> float:
    return (item.get("price") or 0) * (item.get("quantity") or 0)


# ----------------------- Filters -----------------------
def filter_orders(
    orders: Iterable[dict],
    status: Optional[str] = None,
    payment_method: Optional[str] = None,
    date_range: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[dict]:
    """Admin order list filters. ``date_range`` is one of today, week, month."""
    result = list(orders)
    if status:
        result = [o for o in result if o.get("status") == status]
    if payment_method:
        result = [o for o in result if o.get("paymentMethod") == payment_method]
    if date_range:
        today = _start_of_day(as_utc(now) or utcnow())
        if date_range == "today":
            start, end = today, today + timedelta(days=1)
        elif date_range == "week":
            start, end = today - timedelta(days=7), None
        elif date_range == "month":
            start, end = _months_back(today, 1), None
        else:
            raise ValueError(f"Unknown date range: {date_range}")
        result = [
            o for o in result
            if _order_date(o) is not None
            and _order_date(o) >= start
            and (end is None or _order_date(o) < end)
        ]
    return result


def orders_since(orders: Iterable[dict], days: int, now: Optional[datetime] = None) -> List[dict]:
    cutoff = (as_utc(now) or utcnow()) - timedelta(days=days)
    return [o for o in orders if _order_date(o) is not None and _order_date(o) >= cutoff]


# ----------------------- Catalog based -----------------------
def _product_index(products: Iterable[dict]):
    by_id, by_name = {}, {}
    for p in products:
        if p.get("_id") is not None:
            by_id[str(p["_id"])] = p
        if p.get("name"):
            by_name.setdefault(p["name"], p)
    return by_id, by_name


def _matched_items(orders: Iterable[dict], products: Sequence[dict]):
    """Yield (item, product) for every order item found in the catalog."""
    by_id, by_name = _product_index(products)
    for order in orders:
        for item in order.get("items") or []:
            product = by_id.get(str(item.get("product"))) or by_name.get(item.get("name"))
            if product is not None:
                yield item, product


def _subcategory(product: dict):
    return product.get("subCategory") or product.get("subcategory")


def _sales_by(orders, products, key, label) -> List[dict]:
    stats: Dict[str, dict] = {}
    for p in products:
        value = key(p)
        if value:
            stats.setdefault(value, {label: value, "revenue": 0, "quantity": 0})

    for item, product in _matched_items(orders, products):
        entry = stats.get(key(product))
        if entry is not None:
            entry["revenue"] += _item_revenue(item)
            entry["quantity"] += item.get("quantity") or 0

    rows = sorted(stats.values(), key=lambda r: r["revenue"], reverse=True)
    return _with_percentages(rows, "revenue")


def sales_by_category(orders: Iterable[dict], products: Sequence[dict]) -> List[dict]:
    return _sales_by(orders, products, lambda p: p.get("category"), "category")


def sales_by_subcategory(orders: Iterable[dict], products: Sequence[dict]) -> List[dict]:
    return _sales_by(orders, products, _subcategory, "subcategory")


def seller_performance(orders: Iterable[dict], products: Sequence[dict]) -> List[dict]:
    """Revenue per catalog seller. Sellers without sales are listed with zero."""
    sellers: Dict[str, dict] = {}
    for p in products:
        name = p.get("sellername")
        if not name:
            continue
        if name not in sellers:
            sellers[name] = {
                "name": name,
                "phone": p.get("sellerphone") or "",
                "revenue": 0,
                "orders": 0,
                "products": 0,
            }
        sellers[name]["products"] += 1

    for item, product in _matched_items(orders, products):
        seller = sellers.get(product.get("sellername"))
        if seller is not None:
            seller["revenue"] += _item_revenue(item)
            seller["orders"] += 1

    return sorted(sellers.values(), key=lambda s: s["revenue"], reverse=True)


def category_counts(products: Iterable[dict]) -> List[dict]:
    counts: Dict[str, int] = {}
    for p in products:
        counts[p.get("category")] = counts.get(p.get("category"), 0) + 1
    return [{"category": c, "count": n} for c, n in counts.items()]


# ----------------------- Order based -----------------------
def monthly_trend(orders: Iterable[dict], now: Optional[datetime] = None, months: int = TREND_MONTHS) -> List[dict]:
    """Trailing calendar months, oldest first; empty months stay at zero."""
    now = as_utc(now) or utcnow()
    buckets = {}
    for back in range(months - 1, -1, -1):
        year, month = _shift_month(now.year, now.month, -back)
        buckets[(year, month)] = {
            "month": datetime(year, month, 1).strftime("%b %Y"),
            "revenue": 0,
            "orders": 0,
        }

    for order in orders:
        date = _order_date(order)
        if date is None:
            continue
        bucket = buckets.get((date.year, date.month))
        if bucket is not None:
            bucket["revenue"] += order.get("amount") or 0
            bucket["orders"] += 1
    return list(buckets.values())


def weekly_revenue(orders: Iterable[dict], now: Optional[datetime] = None, weeks: int = 4) -> List[dict]:
    now = as_utc(now) or utcnow()
    totals = {f"Week {n}": 0 for n in range(1, weeks + 1)}
    for order in orders:
        date = _order_date(order)
        if date is None:
            continue
        index = (now - date).days // 7
        if 0 <= index < weeks:
            totals[f"Week {weeks - index}"] += order.get("amount") or 0
    return [{"week": w, "revenue": r} for w, r in totals.items()]


def yearly_revenue(orders: Iterable[dict], now: Optional[datetime] = None) -> List[dict]:
    year = (as_utc(now) or utcnow()).year
    totals = {year - 1: 0, year: 0}
    for order in orders:
        date = _order_date(order)
        if date is not None and date.year in totals:
            totals[date.year] += order.get("amount") or 0
    return [{"year": y, "revenue": r} for y, r in totals.items()]


def status_distribution(orders: Iterable[dict]) -> List[dict]:
    counts: Dict[str, int] = {}
    for order in orders:
        counts[order.get("status")] = counts.get(order.get("status"), 0) + 1
    total = sum(counts.values())
    return [
        {"status": s, "count": n, "percentage": _percent_of_total(n, total)}
        for s, n in counts.items()
    ]


def revenue_by_payment_method(orders: Iterable[dict]) -> List[dict]:
    """Grouped on the order amount, not on item revenue."""
    methods: Dict[str, dict] = {}
    for order in orders:
        method = order.get("paymentMethod")
        entry = methods.setdefault(method, {"method": method, "revenue": 0, "count": 0})
        entry["revenue"] += order.get("amount") or 0
        entry["count"] += 1
    return _with_percentages(list(methods.values()), "revenue")


# ----------------------- Pages -----------------------
def build_analytics(orders: List[dict], products: List[dict], days: int = 30, now: Optional[datetime] = None) -> dict:
    now = as_utc(now) or utcnow()
    filtered = orders_since(orders, days, now)
    return {
        "days": days,
        "totalOrders": len(filtered),
        "totalRevenue": sum(o.get("amount") or 0 for o in filtered),
        "salesByCategory": sales_by_category(filtered, products),
        "salesBySubCategory": sales_by_subcategory(filtered, products),
        "sellerPerformance": seller_performance(filtered, products),
        # trailing months ignore the day filter
        "monthlyTrends": monthly_trend(orders, now),
        "orderStatusDistribution": status_distribution(filtered),
        "revenueByPaymentMethod": revenue_by_payment_method(filtered),
    }


def dashboard_summary(orders: List[dict], products: List[dict], now: Optional[datetime] = None) -> dict:
    now = as_utc(now) or utcnow()
    sellers = seller_performance(orders, products)
    recent = sorted(orders, key=lambda o: _order_date(o) or datetime.min.replace(tzinfo=now.tzinfo), reverse=True)
    return {
        "totalProducts": len(products),
        "totalOrders": len(orders),
        "totalRevenue": sum(o.get("amount") or 0 for o in orders),
        "totalSellers": len(sellers),
        "topSellers": sellers[:DASHBOARD_TOP],
        "recentOrders": recent[:DASHBOARD_TOP],
        "monthlyRevenue": [{"month": m["month"], "revenue": m["revenue"]} for m in monthly_trend(orders, now)],
        "weeklyStats": weekly_revenue(orders, now),
        "yearlyStats": yearly_revenue(orders, now),
        "categoryStats": category_counts(products),
    }
