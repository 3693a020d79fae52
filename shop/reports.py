import calendar
from collections import Counter, OrderedDict
from datetime import datetime, time, timedelta

from django.conf import settings
from django.utils import timezone

from .exceptions import ValidationFailed
from .models import Order, ProductVariant

RANGES = ("today", "thisWeek", "thisMonth", "lastMonth", "thisYear")
TOP_PRODUCTS = 5
LOW_STOCK_LIMIT = 10


def date_range(name, now=None):
    """Local [start, end] datetimes for a dashboard range name."""
    if name not in RANGES:
        raise ValidationFailed(f"Khoảng thời gian không hợp lệ: {name}")
    now = timezone.localtime(now)
    today = now.date()

    if name == "today":
        first, last = today, today
    elif name == "thisWeek":
        first, last = today - timedelta(days=today.weekday()), today
    elif name == "thisMonth":
        first = today.replace(day=1)
        last = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    elif name == "lastMonth":
        last = today.replace(day=1) - timedelta(days=1)
        first = last.replace(day=1)
    else:
        first, last = today.replace(month=1, day=1), today.replace(month=12, day=31)

    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(first, time.min), tz)
    end = timezone.make_aware(datetime.combine(last, time.max), tz)
    return start, end


def dashboard_stats(range_name="thisMonth", now=None):
    start, end = date_range(range_name, now)
    orders = (
        Order.objects
        .filter(created_at__gte=start, created_at__lte=end)
        .exclude(status=Order.STATUS_CANCELLED)
        .prefetch_related("items")
        .order_by("created_at")
    )

    summary = {
        "totalRevenue": 0,
        "approvedRevenue": 0,
        "pendingRevenue": 0,
        "totalOrdersCount": 0,
        "approvedOrdersCount": 0,
        "pendingOrdersCount": 0,
    }
    chart = OrderedDict()
    sold = Counter()

    for order in orders:
        # still waiting on COD confirmation or on the QR transfer
        is_pending = order.status in (Order.STATUS_PENDING_COD, Order.STATUS_PENDING_PAYOS)
        summary["totalRevenue"] += order.total
        summary["totalOrdersCount"] += 1
        if is_pending:
            summary["pendingRevenue"] += order.total
            summary["pendingOrdersCount"] += 1
        else:
            summary["approvedRevenue"] += order.total
            summary["approvedOrdersCount"] += 1

        day = timezone.localtime(order.created_at).strftime("%d/%m")
        chart[day] = chart.get(day, 0) + order.total

        for item in order.items.all():
            sold[item.product_name] += item.quantity

    top = sold.most_common(TOP_PRODUCTS)
    return {
        "summary": summary,
        "revenueChart": {"labels": list(chart.keys()), "data": list(chart.values())},
        "topProducts": {"labels": [name for name, _ in top], "data": [qty for _, qty in top]},
        "lowStock": low_stock(),
    }


def low_stock(threshold=None):
    if threshold is None:
        threshold = settings.SHOP_LOW_STOCK_THRESHOLD
    variants = (
        ProductVariant.objects
        .filter(stock__lte=threshold)
        .select_related("product__category")
        .order_by("stock", "pk")[:LOW_STOCK_LIMIT]
    )
    return [
        {
            "variantId": v.pk,
            "name": str(v),
            "category": v.product.category.name if v.product.category_id else "Khác",
            "stock": v.stock,
        }
        for v in variants
    ]
