from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from tenant_admin.core.i18n import translate
from tenant_admin.models.notification import Notification
from tenant_admin.models.team import Team
from tenant_admin.models.user import User
from tenant_admin.services.stats.builders import (
    ChartBuilder,
    ChartPayload,
    ChartType,
    MetricBuilder,
    MetricPayload,
    StatTrend,
    StatVariant,
)

PRIMARY_RGB = "99, 102, 241"


def _month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def _shift_month(value: date, months: int) -> date:
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def last_months(count: int, today: date | None = None) -> list[date]:
    current = _month_start(today or datetime.now(timezone.utc).date())
    return [_shift_month(current, -offset) for offset in range(count - 1, -1, -1)]


def users_per_month(db: Session, months: list[date]) -> list[int]:
    if not months:
        return []
    start = datetime(months[0].year, months[0].month, 1, tzinfo=timezone.utc)
    rows = (
        db.query(User.created_at)
        .filter(User.deleted_at.is_(None), User.created_at >= start)
        .all()
    )
    buckets = {m: 0 for m in months}
    for (created_at,) in rows:
        if created_at is None:
            continue
        key = _month_start(created_at.date())
        if key in buckets:
            buckets[key] += 1
    return [buckets[m] for m in months]


def trend_between(current: int, previous: int) -> tuple[float, StatTrend]:
    if previous == 0:
        if current == 0:
            return 0.0, StatTrend.NEUTRAL
        return 100.0, StatTrend.UP
    change = round((current - previous) * 100.0 / previous, 1)
    if change > 0:
        return change, StatTrend.UP
    if change < 0:
        return abs(change), StatTrend.DOWN
    return 0.0, StatTrend.NEUTRAL


def registrations_chart(db: Session, locale: str | None = None, months: int = 6, today: date | None = None) -> ChartPayload:
    window = last_months(months, today)
    return (
        ChartBuilder.make()
        .type(ChartType.LINE)
        .title(translate("dashboard.users_per_month", locale))
        .labels([m.strftime("%Y-%m") for m in window])
        .dataset(
            translate("dashboard.users_per_month", locale),
            users_per_month(db, window),
            {
                "borderColor": f"rgb({PRIMARY_RGB})",
                "backgroundColor": f"rgba({PRIMARY_RGB}, 0.2)",
                "fill": True,
                "tension": 0.4,
            },
        )
        .build()
    )


def status_chart(db: Session, locale: str | None = None) -> ChartPayload:
    base = db.query(User).filter(User.deleted_at.is_(None))
    active = base.filter(User.is_active.is_(True)).count()
    inactive = base.filter(User.is_active.is_(False)).count()
    return (
        ChartBuilder.make()
        .type(ChartType.DOUGHNUT)
        .title(translate("dashboard.users_status", locale))
        .labels([translate("dashboard.active", locale), translate("dashboard.inactive", locale)])
        .dataset(
            translate("dashboard.users_status", locale),
            [active, inactive],
            {"backgroundColor": ["rgb(34, 197, 94)", "rgb(239, 68, 68)"]},
        )
        .build()
    )


def dashboard_metrics(db: Session, user: User, locale: str | None = None, today: date | None = None) -> list[MetricPayload]:
    users = db.query(User).filter(User.deleted_at.is_(None))
    previous, current = users_per_month(db, last_months(2, today))
    trend_value, trend = trend_between(current, previous)

    unread = (
        db.query(Notification)
        .filter(
            Notification.notifiable_id == user.id,
            Notification.deleted_at.is_(None),
            Notification.read_at.is_(None),
        )
        .count()
    )

    return [
        MetricBuilder.make()
        .label(translate("dashboard.total_users", locale))
        .value(users.count())
        .trend(trend_value, trend)
        .icon("users")
        .color("primary")
        .build(),
        MetricBuilder.make()
        .label(translate("dashboard.active_users", locale))
        .value(users.filter(User.is_active.is_(True)).count())
        .icon("check-circle")
        .color("success")
        .variant(StatVariant.OUTLINE)
        .build(),
        MetricBuilder.make()
        .label(translate("dashboard.teams", locale))
        .value(db.query(Team).filter(Team.deleted_at.is_(None)).count())
        .icon("user-group")
        .color("info")
        .build(),
        MetricBuilder.make()
        .label(translate("dashboard.unread_notifications", locale))
        .value(unread)
        .icon("bell")
        .color("warning")
        .build(),
    ]


def build_dashboard(db: Session, user: User, locale: str | None = None, today: date | None = None) -> dict[str, Any]:
    """Every query runs here; the payloads hold plain data."""
    return {
        "charts": {
            "registrations": registrations_chart(db, locale, today=today).to_dict(),
            "status": status_chart(db, locale).to_dict(),
        },
        "metrics": [m.to_dict() for m in dashboard_metrics(db, user, locale, today)],
    }
