"""
Human- and machine-readable run summaries, printed after the artifact is written.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from focus_export.schemas.billing import RunSummary
from focus_export.shared.core.precision import format_money


class SummaryFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    KV = "kv"


def _fields(summary: RunSummary, artifact: Optional[Path]) -> dict:
    return {
        "artifact": str(artifact) if artifact else "",
        "records": summary.record_count,
        "processed": summary.processed_count,
        "skipped": summary.skipped_count,
        "unknown_entities": len(summary.unknown_entity_keys),
        "warnings": len(summary.warnings),
        "list_cost": format_money(summary.total_list_cost),
        "billed_cost": format_money(summary.total_billed_cost),
        "subsidy_amount": format_money(summary.total_subsidy_amount),
    }


def render_summary(
    summary: RunSummary,
    fmt: SummaryFormat = SummaryFormat.TEXT,
    artifact: Optional[Path] = None,
) -> str:
    fields = _fields(summary, artifact)

    if fmt == SummaryFormat.JSON:
        return json.dumps(fields, sort_keys=True)

    if fmt == SummaryFormat.KV:
        return "\n".join(f"{key}={value}" for key, value in fields.items())

    lines = [
        f"Artifact:         {fields['artifact']}",
        f"Records:          {fields['records']}",
        f"Usage processed:  {fields['processed']}",
        f"Usage skipped:    {fields['skipped']}",
        f"Total list cost:  ${fields['list_cost']}",
        f"Total billed:     ${fields['billed_cost']}",
        f"Subsidy amount:   ${fields['subsidy_amount']}",
    ]
    if summary.unknown_entity_keys:
        lines.append(f"Unknown entities ({len(summary.unknown_entity_keys)}):")
        lines.extend(f"  - {key}" for key in summary.unknown_entity_keys)
    if summary.warnings:
        lines.append(f"Warnings:         {len(summary.warnings)}")
    return "\n".join(lines)
