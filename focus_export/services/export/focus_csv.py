"""
FOCUS CSV rendering.

Fixed 10-column layout; Tags is a compact JSON object carried as one quoted,
escaped CSV field.
"""

import csv
import io
import json
from typing import Iterable, List

from focus_export.schemas.billing import FocusRecord, FocusTags
from focus_export.shared.core.precision import format_money

FOCUS_COLUMNS = [
    "BillingPeriodStart",
    "BillingPeriodEnd",
    "ChargePeriodStart",
    "ChargePeriodEnd",
    "ListCost",
    "BilledCost",
    "ResourceId",
    "ResourceName",
    "ServiceName",
    "Tags",
]


def tags_json(tags: FocusTags) -> str:
    return json.dumps(
        {"pi_email": tags.pi_email, "project_id": tags.project_id, "fund_org": tags.fund_org},
        separators=(",", ":"),
    )


def focus_row(record: FocusRecord) -> List[str]:
    return [
        record.billing_period_start,
        record.billing_period_end,
        record.charge_period_start,
        record.charge_period_end,
        format_money(record.list_cost),
        format_money(record.billed_cost),
        record.resource_id,
        record.resource_name,
        record.service_name,
        tags_json(record.tags),
    ]


def render_focus_csv(records: Iterable[FocusRecord]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(FOCUS_COLUMNS)
    for record in records:
        writer.writerow(focus_row(record))
    return output.getvalue()
