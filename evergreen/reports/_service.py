"""
ReportService — read-only projections for the admin side.
"""

from __future__ import annotations

from datetime import date

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import ZERO, Clock, money, utcnow
from evergreen.domain import Order, OrderStatus
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.reports._dashboard import (
    ChartData,
    ChartKind,
    Dashboard,
    as_chart,
    top_categories,
    top_products,
)
from evergreen.reports._ranges import ChartPeriod, DateRange, ReportKind, chart_range, date_range
from evergreen.reports._sales import SalesReport, build_sales_report
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)

DASHBOARD_TOP = 5
CHART_TOP = 10


def _delivered(order: Order) -> bool:
    return order.order_status is OrderStatus.DELIVERED


class ReportService:
    def __init__(self, repo: Repository, clock: Clock = utcnow) -> None:
        self._repo = repo
        self._clock = clock

    @boundary("reports.sales")
    async def sales_report(
        self,
        kind: ReportKind | str,
        start: date | None = None,
        end: date | None = None,
    ) -> Result[SalesReport, CommerceError]:
        match date_range(kind, self._clock(), start, end):
            case Ok(window):
                pass
            case Error(e):
                return Error(e)
        return Ok(await self.sales_in(window))

    async def sales_in(self, window: DateRange) -> SalesReport:
        orders = await self._repo.orders.find(lambda o: _delivered(o) and o.created_at in window)
        users = {u.id: u for u in await self._repo.users.all()}
        report = build_sales_report(window, orders, users)
        logger.info("sales_report_built", orders=report.totals.total_orders)
        return report

    @boundary("reports.dashboard")
    async def dashboard(self) -> Result[Dashboard, CommerceError]:
        delivered = await self._repo.orders.find(_delivered)
        categories = {c.id: c for c in await self._repo.categories.all()}
        return Ok(Dashboard(
            total_users=await self._repo.users.count(),
            total_products=await self._repo.products.count(),
            delivered_orders=len(delivered),
            revenue=money(sum((o.total_price for o in delivered), ZERO)),
            top_categories=top_categories(delivered, categories, DASHBOARD_TOP),
            top_products=top_products(delivered, DASHBOARD_TOP),
        ))

    @boundary("reports.chart")
    async def chart(
        self,
        kind: ChartKind | str,
        period: ChartPeriod | str,
        day: date | None = None,
    ) -> Result[ChartData, CommerceError]:
        """Top sellers by quantity over every order placed in the period."""
        try:
            kind = ChartKind(kind)
        except ValueError:
            return Error(Errors.bad_request("Invalid chart type."))
        match chart_range(period, self._clock(), day):
            case Ok(window):
                pass
            case Error(e):
                return Error(e)

        orders = await self._repo.orders.find(lambda o: o.created_at in window)
        if kind is ChartKind.PRODUCTS:
            return Ok(as_chart(top_products(orders, CHART_TOP)))
        categories = {c.id: c for c in await self._repo.categories.all()}
        return Ok(as_chart(top_categories(orders, categories, CHART_TOP)))


__all__ = ("ReportService", "DASHBOARD_TOP", "CHART_TOP")
