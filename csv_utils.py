import csv
import re
from io import StringIO
from typing import Sequence

from schemas import BreakdownRow

BREAKDOWN_COLUMNS = [
    "Date",
    "Posting",
    "OperationType",
    "Sales",
    "Commissions",
    "Delivery",
    "Returns",
    "Ads",
    "Services",
    "NetProfit",
]


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    formula_triggers = ("=", "+", "-", "@", "\t", "\r")

    if value.startswith(formula_triggers):
        return "\t" + value

    dangerous_patterns = [
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\s*",
        r"^sh\s*",
        r"^\.",
        r"^http[s]?://",
    ]

    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def _money(value: float) -> str:
    return f"{value:.2f}"


def export_breakdown(rows: Sequence[BreakdownRow]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(BREAKDOWN_COLUMNS)
    for row in rows:
        writer.writerow(
            [
                row.date_msk,
                sanitize_csv_value(row.posting_number),
                sanitize_csv_value(row.operation_type or ""),
                _money(row.sales),
                _money(row.commissions),
                _money(row.delivery),
                _money(row.returns),
                _money(row.ads),
                _money(row.services),
                _money(row.net_profit),
            ]
        )
    return output.getvalue()
