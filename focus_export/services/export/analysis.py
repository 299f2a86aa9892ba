"""
WhatIf analysis document.

A dry-run view of a billing pass: per-record detail (including the
aggregation diagnostics under `_meta`), unknown entities, warnings and totals.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from focus_export.schemas.billing import FocusRecord, UsageKind
from focus_export.services.costs.aggregator import AggregationResult
from focus_export.services.costs.period import BillingPeriod
from focus_export.services.export.focus_csv import FOCUS_COLUMNS


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def analysis_record(record: FocusRecord) -> Dict[str, Any]:
    values = [
        record.billing_period_start,
        record.billing_period_end,
        record.charge_period_start,
        record.charge_period_end,
        float(record.list_cost),
        float(record.billed_cost),
        record.resource_id,
        record.resource_name,
        record.service_name,
        record.tags.model_dump(),
    ]
    document = dict(zip(FOCUS_COLUMNS, values))
    document["_meta"] = _jsonable(record.meta)
    return document


def build_analysis_document(
    result: AggregationResult,
    period: BillingPeriod,
    kind: UsageKind,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    summary = result.summary
    generated_at = generated_at or datetime.now(timezone.utc)

    return {
        "metadata": {
            "generatedAt": generated_at.isoformat(timespec="seconds"),
            "billingPeriod": period.label,
            "periodStart": period.start.isoformat(),
            "periodEnd": period.end.isoformat(),
            "mode": "WhatIf",
            "usageKind": kind.value,
            "processedCount": summary.processed_count,
            "skippedCount": summary.skipped_count,
            "recordCount": summary.record_count,
        },
        "records": [analysis_record(r) for r in result.records],
        "unknownEntities": list(summary.unknown_entity_keys),
        "warnings": [_jsonable(w.model_dump(mode="json")) for w in summary.warnings],
        "totals": {
            "listCost": float(summary.total_list_cost),
            "billedCost": float(summary.total_billed_cost),
            "subsidyAmount": float(summary.total_subsidy_amount),
        },
    }


def render_analysis_json(
    result: AggregationResult,
    period: BillingPeriod,
    kind: UsageKind,
    generated_at: Optional[datetime] = None,
) -> str:
    document = build_analysis_document(result, period, kind, generated_at)
    return json.dumps(document, indent=2) + "\n"
