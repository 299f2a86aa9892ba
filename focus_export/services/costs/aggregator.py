from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from focus_export.schemas.billing import (
    FocusRecord,
    FocusTags,
    RateConfig,
    RunSummary,
    UsageKind,
    UsageRecord,
)
from focus_export.services.costs.accumulator import RunAccumulator
from focus_export.services.costs.calculator import CostBreakdown, calculate_cost
from focus_export.services.costs.metadata import MetadataResolver
from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.precision import ZERO

logger = structlog.get_logger()

BucketKey = Tuple[str, str]


@dataclass
class AggregationBucket:
    """Running totals for one (entity, resource class) pair."""
    entity_key: str
    resource_class: str
    kind: UsageKind
    total_quantity: Decimal = ZERO
    record_count: int = 0
    cpu_hours: Decimal = ZERO

    def add(self, record: UsageRecord) -> None:
        self.total_quantity += record.quantity
        self.record_count += 1
        self.cpu_hours += record.detail.get("cpu_hours", ZERO)


@dataclass
class AggregationResult:
    records: List[FocusRecord] = field(default_factory=list)
    summary: RunSummary = field(default_factory=RunSummary)


class BillingAggregator:
    """
    Folds usage records into (entity, resource class) buckets and emits one
    FOCUS record per bucket.

    Output is a pure function of the inputs: buckets are emitted in sorted key
    order and run totals are the sum of the per-record rounded costs.
    """

    def __init__(self, rate_config: RateConfig, resolver: MetadataResolver, period: BillingPeriod):
        self.rate_config = rate_config
        self.resolver = resolver
        self.period = period

    def aggregate(self, usage_records: Iterable[UsageRecord]) -> Dict[BucketKey, AggregationBucket]:
        buckets: Dict[BucketKey, AggregationBucket] = {}
        for record in usage_records:
            key = (record.entity_key, record.resource_class)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = AggregationBucket(
                    entity_key=record.entity_key,
                    resource_class=record.resource_class,
                    kind=record.kind,
                )
                buckets[key] = bucket
            bucket.add(record)
        return buckets

    def run(
        self,
        usage_records: Iterable[UsageRecord],
        accumulator: Optional[RunAccumulator] = None,
    ) -> AggregationResult:
        accumulator = accumulator or RunAccumulator()
        buckets = self.aggregate(usage_records)

        records: List[FocusRecord] = []
        total_list = ZERO
        total_billed = ZERO

        # Buckets keep first-seen order, so unknown entities are flagged in input order
        tags_by_entity: Dict[str, FocusTags] = {}
        for bucket in buckets.values():
            if bucket.entity_key not in tags_by_entity:
                tags_by_entity[bucket.entity_key] = self.resolver.resolve(bucket.entity_key, accumulator)

        for key in sorted(buckets):
            bucket = buckets[key]
            cost = calculate_cost(bucket.total_quantity, self.rate_config, bucket.resource_class)
            record = self._build_record(bucket, cost, tags_by_entity[bucket.entity_key])
            records.append(record)
            total_list += record.list_cost
            total_billed += record.billed_cost

        summary = RunSummary(
            total_list_cost=total_list,
            total_billed_cost=total_billed,
            total_subsidy_amount=total_list - total_billed,
            processed_count=accumulator.processed_count,
            skipped_count=accumulator.skipped_count,
            record_count=len(records),
            unknown_entity_keys=list(accumulator.unknown_entity_keys),
            warnings=list(accumulator.warnings),
        )

        logger.info(
            "billing_aggregation_complete",
            buckets=len(buckets),
            records=len(records),
            total_list_cost=str(total_list),
            total_billed_cost=str(total_billed),
            unknown_entities=len(summary.unknown_entity_keys),
        )
        return AggregationResult(records=records, summary=summary)

    def _build_record(self, bucket: AggregationBucket, cost: CostBreakdown, tags: FocusTags) -> FocusRecord:
        start = self.period.start.isoformat()
        end = self.period.end.isoformat()

        if bucket.kind == UsageKind.STORAGE:
            resource_id = f"{tags.project_id}-storage"
            resource_name = f"{tags.project_id} Storage"
            service_name = self.rate_config.service_name
            meta = {
                "path": bucket.entity_key,
                "usageGB": cost.usage_gb,
                "billableGB": cost.billable_gb,
                "freeGB": self.rate_config.free_allowance_gb or ZERO,
                "quotaCount": bucket.record_count,
            }
        else:
            modifier = self.rate_config.modifier_for(bucket.resource_class)
            description = (modifier.description if modifier else None) or bucket.resource_class
            resource_id = f"{bucket.entity_key}-{bucket.resource_class}"
            resource_name = f"{bucket.entity_key} ({bucket.resource_class})"
            service_name = f"{self.rate_config.service_name} - {description}"
            meta = {
                "account": bucket.entity_key,
                "partition": bucket.resource_class,
                "totalSU": bucket.total_quantity,
                "cpuHours": bucket.cpu_hours,
                "jobCount": bucket.record_count,
                "subsidyPercent": cost.subsidy_percent,
            }

        return FocusRecord(
            billing_period_start=start,
            billing_period_end=end,
            charge_period_start=start,
            charge_period_end=end,
            list_cost=cost.list_cost,
            billed_cost=cost.billed_cost,
            resource_id=resource_id,
            resource_name=resource_name,
            service_name=service_name,
            tags=tags,
            meta=meta,
        )
