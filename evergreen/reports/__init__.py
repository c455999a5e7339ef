"""
Reports — sales report, dashboard, charts.

    report = (await reports.sales_report("monthly")).unwrap()
    write_csv(report, sys.stdout)
"""

from evergreen.reports._dashboard import (
    ChartData,
    ChartKind,
    Dashboard,
    TopEntry,
    as_chart,
    top_by_quantity,
    top_categories,
    top_products,
)
from evergreen.reports._ranges import (
    ChartPeriod,
    DateRange,
    ReportKind,
    chart_range,
    date_range,
)
from evergreen.reports._sales import (
    SalesReport,
    SalesRow,
    SalesTotals,
    build_sales_report,
    sales_row,
    sales_totals,
)
from evergreen.reports._service import ReportService
from evergreen.reports._sinks import write_csv

__all__ = (
    "ReportKind",
    "ChartPeriod",
    "DateRange",
    "date_range",
    "chart_range",
    "SalesRow",
    "SalesTotals",
    "SalesReport",
    "sales_row",
    "sales_totals",
    "build_sales_report",
    "ChartKind",
    "TopEntry",
    "Dashboard",
    "ChartData",
    "top_by_quantity",
    "top_products",
    "top_categories",
    "as_chart",
    "ReportService",
    "write_csv",
)
