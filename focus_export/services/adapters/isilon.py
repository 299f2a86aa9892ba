"""
Isilon Quota Adapter

Reads directory quota snapshots (`isi quota quotas list --format=json`, or a
captured copy of that output) and normalizes them into byte-quantity usage
records, one per quota path.
"""

import json
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog

from focus_export.schemas.billing import RateConfig, UsageKind, UsageRecord, WarningCode
from focus_export.services.adapters.base import UsageAdapter
from focus_export.services.costs.accumulator import RunAccumulator
from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.exceptions import AdapterError, InvalidUsageError
from focus_export.shared.core.precision import to_decimal

logger = structlog.get_logger()

STORAGE_RESOURCE_CLASS = "storage"
DIRECTORY_QUOTA_TYPE = "directory"

# Flat field names some OneFS releases and exports use instead of a usage object
FLAT_USAGE_FIELDS = ("usage_logical", "usage_physical")


def extract_usage_bytes(quota: Dict[str, Any]) -> Any:
    """
    First non-null usage value: usage.logical, usage.physical, a scalar
    `usage`, then the flat usage_logical / usage_physical fields.
    """
    usage = quota.get("usage")
    if isinstance(usage, dict):
        for field in ("logical", "physical"):
            if usage.get(field) is not None:
                return usage[field]
    elif usage is not None:
        return usage

    for field in FLAT_USAGE_FIELDS:
        if quota.get(field) is not None:
            return quota[field]
    return None


class IsilonAdapter(UsageAdapter):
    """Adapter for Isilon/PowerScale directory quotas (storage usage)."""

    kind = UsageKind.STORAGE
    source_name = "isilon"

    def build_command(self, period: BillingPeriod, rate_config: RateConfig) -> List[str]:
        # Quotas are a point-in-time snapshot; the period only labels the output
        return [self.binary, "quota", "quotas", "list", "--format=json"]

    def parse(self, raw: str) -> List[Dict[str, Any]]:
        if not raw.strip():
            return []
        try:
            data = json.loads(raw, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise AdapterError(f"Unreadable quota data: {e.msg} (line {e.lineno})") from e

        quotas = data.get("quotas") if isinstance(data, dict) else data
        if not isinstance(quotas, list):
            raise AdapterError("Quota data must be a list or an object with a 'quotas' list")

        logger.debug("quota_data_parsed", quotas=len(quotas))
        return [q for q in quotas if isinstance(q, dict)]

    def to_usage_records(
        self,
        rows: List[Dict[str, Any]],
        rate_config: RateConfig,
        accumulator: RunAccumulator,
    ) -> List[UsageRecord]:
        records: List[UsageRecord] = []

        for quota in rows:
            path = str(quota.get("path") or "")
            if not path:
                accumulator.record_skipped("missing_path", quota_id=quota.get("id"))
                continue

            quota_type = quota.get("type")
            if quota_type and quota_type != DIRECTORY_QUOTA_TYPE:
                # user/group quotas overlap the directory quota on the same path
                accumulator.record_skipped("non_directory_quota", entity_key=path, quota_type=quota_type)
                continue

            if path in rate_config.excluded_entities:
                accumulator.record_skipped("excluded_path", entity_key=path)
                continue

            try:
                usage_bytes = self._usage_bytes(quota)
            except InvalidUsageError as e:
                accumulator.record_skipped("invalid_usage", entity_key=path)
                accumulator.warn(
                    WarningCode.INVALID_USAGE,
                    f"Quota '{path}' skipped: {e.message}",
                    entity_key=path,
                    context=e.details,
                )
                continue

            if usage_bytes is None or usage_bytes == 0:
                accumulator.record_skipped("no_usage", entity_key=path)
                continue

            accumulator.record_processed()
            records.append(
                UsageRecord(
                    entity_key=path,
                    resource_class=STORAGE_RESOURCE_CLASS,
                    quantity=usage_bytes,
                    kind=UsageKind.STORAGE,
                    detail={"quota_id": quota.get("id"), "quota_type": quota_type},
                )
            )

        return records

    def _usage_bytes(self, quota: Dict[str, Any]) -> Optional[Decimal]:
        raw = extract_usage_bytes(quota)
        if raw is None:
            return None
        try:
            usage_bytes = to_decimal(raw)
        except ValueError as e:
            raise InvalidUsageError(f"Unparseable usage value {raw!r}", details={"usage": str(raw)}) from e
        if usage_bytes < 0:
            raise InvalidUsageError(f"Negative usage value {raw!r}", details={"usage": str(raw)})
        return usage_bytes
