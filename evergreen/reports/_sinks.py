"""
Report sinks. CSV only; spreadsheet and PDF writers live outside this package.
"""

from __future__ import annotations

import csv
from typing import TextIO

from evergreen.reports._sales import SalesReport

HEADER = (
    "Order ID",
    "Order Date",
    "User",
    "Products",
    "Shipping Address",
    "Payment Method",
    "Status",
    "Total Amount",
    "Coupon",
    "Coupon Discount",
    "Payable",
    "Category Discount",
)


def write_csv(report: SalesReport, stream: TextIO) -> int:
    """Write the report to ``stream``; returns the number of order rows."""
    writer = csv.writer(stream)
    writer.writerow(("Total Orders", report.totals.total_orders))
    writer.writerow(("Total Amount", report.totals.total_amount))
    writer.writerow(("Total Discount", report.totals.total_discount))
    writer.writerow(())
    writer.writerow(HEADER)
    for row in report.rows:
        writer.writerow((
            row.order_number,
            row.date.strftime("%Y-%m-%d %H:%M:%S"),
            row.customer,
            row.products,
            row.shipping,
            row.payment_method,
            row.status,
            row.total,
            row.coupon_code,
            row.coupon_discount,
            row.payable,
            row.category_discount,
        ))
    return len(report.rows)


__all__ = ("HEADER", "write_csv")
