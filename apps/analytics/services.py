from __future__ import annotations

from decimal import Decimal
from typing import Any

from django.db.models import Count, Sum
from django.db.models.functions import TruncMonth

from apps.affiliates.models import ClickRecord, TrackingLink
from apps.authentication.models import User
from apps.commissions.models import Commission
from apps.payments.models import Payment
from apps.products.models import Product

from .models import ActivityLog

ZERO = Decimal("0.00")

BOT_PATTERNS = [
    "bot",
    "crawler",
    "spider",
    "scraper",
    "curl",
    "wget",
    "python-requests",
    "java",
    "scrapy",
]


def is_bot_user_agent(user_agent: str | None) -> bool:
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(pattern in ua for pattern in BOT_PATTERNS)


def log_activity(
    action: str,
    user: User | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = "",
    metadata: dict[str, Any] | None = None,
) -> ActivityLog:
    return ActivityLog.objects.create(
        user=user,
        action=action[:255],
        entity_type=entity_type[:100] if entity_type else None,
        entity_id=entity_id,
        ip_address=ip_address or None,
        user_agent=user_agent or "",
        metadata=metadata or {},
    )


def _total(qs, field: str) -> Decimal:
    return qs.aggregate(total=Sum(field))["total"] or ZERO


def affiliate_stats(user: User) -> dict[str, Any]:
    commissions = Commission.objects.filter(affiliate=user)
    return {
        "clicks": ClickRecord.objects.filter(link__affiliate=user).count(),
        "humanClicks": ClickRecord.objects.filter(link__affiliate=user, is_bot=False).count(),
        "links": user.tracking_links.count(),
        "paidEarnings": _total(commissions.filter(status=Commission.STATUS_PAID), "amount"),
        "pendingEarnings": _total(commissions.filter(status=Commission.STATUS_PENDING), "amount"),
        "balance": user.commission_balance,
    }


def admin_stats() -> dict[str, Any]:
    sales = Payment.objects.filter(kind=Payment.KIND_SALE, status=Payment.STATUS_COMPLETED)
    return {
        "totalUsers": User.objects.count(),
        "totalAffiliates": User.objects.filter(role=User.ROLE_AFFILIATE).count(),
        "totalRevenue": _total(sales, "amount"),
        "totalClicks": ClickRecord.objects.count(),
        "pendingApprovals": Product.objects.filter(status=Product.STATUS_PENDING).count(),
        "commissionsPending": _total(Commission.objects.filter(status=Commission.STATUS_PENDING), "amount"),
        "commissionsPaid": _total(Commission.objects.filter(status=Commission.STATUS_PAID), "amount"),
        "platformProfit": _total(sales, "platform_fee"),
    }


def _month_label(value) -> str:
    return value.strftime("%Y-%m")


def affiliate_monthly_earnings(user: User, months: int = 12) -> dict[str, Any]:
    """Paid earnings per month, newest first, plus the affiliate's best products."""
    monthly = (
        Commission.objects.filter(affiliate=user, status=Commission.STATUS_PAID)
        .annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(earnings=Sum("amount"), commissions=Count("id"))
        .order_by("-month")[:months]
    )

    earnings_by_product = dict(
        Commission.objects.filter(affiliate=user)
        .values("product_id")
        .annotate(total=Sum("amount"))
        .values_list("product_id", "total")
    )
    links = (
        TrackingLink.objects.filter(affiliate=user)
        .values("product_id", "product__title")
        .annotate(clicks=Count("clicks"))
    )
    top_products = sorted(
        (
            {
                "productId": str(row["product_id"]),
                "title": row["product__title"],
                "clicks": row["clicks"],
                "earnings": earnings_by_product.get(row["product_id"]) or ZERO,
            }
            for row in links
        ),
        key=lambda item: (item["earnings"], item["clicks"]),
        reverse=True,
    )[:5]

    return {
        "monthlyEarnings": [
            {"month": _month_label(row["month"]), "earnings": row["earnings"], "commissions": row["commissions"]}
            for row in monthly
        ],
        "topProducts": top_products,
    }


def revenue_by_month(months: int = 12) -> dict[str, Any]:
    """Completed sale revenue against paid commissions, totals and per month."""
    sales = Payment.objects.filter(kind=Payment.KIND_SALE, status=Payment.STATUS_COMPLETED)
    paid = Commission.objects.filter(status=Commission.STATUS_PAID)

    rows: dict[Any, dict[str, Any]] = {}
    sale_months = (
        sales.annotate(month=TruncMonth("created_at"))
        .values("month")
        .annotate(revenue=Sum("amount"), fees=Sum("platform_fee"))
        .order_by()
    )
    for row in sale_months:
        rows[row["month"]] = {"revenue": row["revenue"] or ZERO, "platformFees": row["fees"] or ZERO}
    commission_months = (
        paid.annotate(month=TruncMonth("created_at")).values("month").annotate(total=Sum("amount")).order_by()
    )
    for row in commission_months:
        rows.setdefault(row["month"], {"revenue": ZERO, "platformFees": ZERO})["commissions"] = row["total"]

    monthly = [
        {
            "month": _month_label(month),
            "revenue": values["revenue"],
            "commissions": values.get("commissions", ZERO),
            "platformFees": values["platformFees"],
        }
        for month, values in sorted(rows.items(), key=lambda item: item[0], reverse=True)[:months]
    ]
    total_revenue = _total(sales, "amount")
    total_commissions = _total(paid, "amount")
    return {
        "totalRevenue": total_revenue,
        "totalCommissions": total_commissions,
        "platformProfit": _total(sales, "platform_fee"),
        "revenueAfterCommissions": total_revenue - total_commissions,
        "monthlyData": monthly,
    }
