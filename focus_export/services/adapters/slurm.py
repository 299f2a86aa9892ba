"""
Slurm Accounting Adapter

Reads job allocations from `sacct --parsable2` output (live or captured) and
normalizes them into Service Unit usage records:

    SU = AllocCPUS * elapsed_hours * partition_multiplier

Elapsed time arrives as D-HH:MM:SS, HH:MM:SS or MM:SS.
"""

import csv
import io
import re
from decimal import Decimal
from typing import Any, Dict, List, Set

import pandas as pd
import structlog

from focus_export.schemas.billing import RateConfig, UsageKind, UsageRecord, WarningCode
from focus_export.services.adapters.base import UsageAdapter
from focus_export.services.costs.accumulator import RunAccumulator
from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.exceptions import AdapterError, InvalidUsageError
from focus_export.shared.core.precision import to_decimal

logger = structlog.get_logger()

SACCT_FIELDS = ["job_id", "account", "partition", "alloc_cpus", "elapsed", "state"]
SACCT_FORMAT = "JobID,Account,Partition,AllocCPUS,Elapsed,State"

ELAPSED_PATTERN = re.compile(r"^(?:(?P<days>\d+)-)?(?P<clock>\d+:\d+(?::\d+)?)$")

SECONDS_PER_HOUR = Decimal(3600)
MINUTES_PER_HOUR = Decimal(60)


def parse_elapsed_hours(elapsed: str) -> Decimal:
    """
    Convert a Slurm elapsed string to fractional hours.

        "1-02:03:04" -> 26 + 3/60 + 4/3600
        "02:03:04"   ->  2 + 3/60 + 4/3600
        "03:04"      ->      3/60 + 4/3600

    Raises:
        InvalidUsageError: the string matches none of the three formats.
    """
    match = ELAPSED_PATTERN.match((elapsed or "").strip())
    if not match:
        raise InvalidUsageError(f"Malformed elapsed time '{elapsed}'", details={"elapsed": elapsed})

    parts = [int(p) for p in match.group("clock").split(":")]
    days = int(match.group("days") or 0)
    if len(parts) == 3:
        hours, minutes, seconds = parts
    elif days:
        # D-MM:SS is not a Slurm format
        raise InvalidUsageError(f"Malformed elapsed time '{elapsed}'", details={"elapsed": elapsed})
    else:
        hours = 0
        minutes, seconds = parts

    return (
        Decimal(days * 24 + hours)
        + Decimal(minutes) / MINUTES_PER_HOUR
        + Decimal(seconds) / SECONDS_PER_HOUR
    )


def normalize_state(state: str) -> str:
    """'CANCELLED by 1234' -> 'CANCELLED'."""
    return (state or "").strip().split(" ", 1)[0].upper()


class SlurmAdapter(UsageAdapter):
    """Adapter for Slurm job accounting (compute usage)."""

    kind = UsageKind.COMPUTE
    source_name = "slurm"

    def build_command(self, period: BillingPeriod, rate_config: RateConfig) -> List[str]:
        command = [
            self.binary,
            f"--starttime={period.start.isoformat()}",
            f"--endtime={period.query_end.isoformat()}",
            f"--format={SACCT_FORMAT}",
            "--allocations",
            "--parsable2",
            "--noheader",
        ]
        if rate_config.billable_states:
            command.append(f"--state={','.join(rate_config.billable_states)}")
        return command

    def parse(self, raw: str) -> List[Dict[str, Any]]:
        if not raw.strip():
            return []

        try:
            df = pd.read_csv(
                io.StringIO(raw),
                sep="|",
                header=None,
                names=SACCT_FIELDS,
                usecols=list(range(len(SACCT_FIELDS))),
                index_col=False,
                dtype=str,
                keep_default_na=False,
                quoting=csv.QUOTE_NONE,
                skip_blank_lines=True,
            )
        except pd.errors.ParserError as e:
            raise AdapterError(f"Unreadable sacct output: {e}") from e
        df = df.fillna("")
        for column in SACCT_FIELDS:
            df[column] = df[column].str.strip()

        logger.debug("sacct_output_parsed", rows=len(df))
        return df.to_dict("records")

    def to_usage_records(
        self,
        rows: List[Dict[str, Any]],
        rate_config: RateConfig,
        accumulator: RunAccumulator,
    ) -> List[UsageRecord]:
        billable_states = {s.upper() for s in rate_config.billable_states}
        unknown_partitions: Set[str] = set()
        records: List[UsageRecord] = []

        for row in rows:
            job_id = row.get("job_id", "")
            if not job_id or "." in job_id:
                # Blank lines and job steps (123.batch) carry no allocation of their own
                continue

            account = row.get("account", "")
            partition = row.get("partition", "")

            state = normalize_state(row.get("state", ""))
            if billable_states and state not in billable_states:
                accumulator.record_skipped("non_billable_state", entity_key=account, job_id=job_id, state=state)
                continue

            if account in rate_config.excluded_entities:
                accumulator.record_skipped("excluded_account", entity_key=account, job_id=job_id)
                continue

            try:
                record = self._to_usage_record(row, rate_config)
            except InvalidUsageError as e:
                accumulator.record_skipped("invalid_usage", entity_key=account, job_id=job_id)
                accumulator.warn(
                    WarningCode.INVALID_USAGE,
                    f"Job {job_id} skipped: {e.message}",
                    entity_key=account,
                    context={"job_id": job_id, **e.details},
                )
                continue

            if rate_config.modifier_for(partition) is None and partition not in unknown_partitions:
                unknown_partitions.add(partition)
                accumulator.warn(
                    WarningCode.UNRECOGNIZED_RESOURCE_CLASS,
                    f"Unknown partition '{partition}' for job {job_id}, using default multiplier",
                    entity_key=account,
                    context={"job_id": job_id, "partition": partition},
                )

            accumulator.record_processed()
            records.append(record)

        return records

    def _to_usage_record(self, row: Dict[str, Any], rate_config: RateConfig) -> UsageRecord:
        job_id = row.get("job_id", "")
        alloc_raw = row.get("alloc_cpus", "")
        try:
            alloc_cpus = to_decimal(alloc_raw)
        except ValueError as e:
            raise InvalidUsageError(
                f"Unparseable allocated CPU count '{alloc_raw}'",
                details={"alloc_cpus": alloc_raw},
            ) from e
        if alloc_cpus < 0:
            raise InvalidUsageError(
                f"Negative allocated CPU count '{alloc_raw}'",
                details={"alloc_cpus": alloc_raw},
            )

        hours = parse_elapsed_hours(row.get("elapsed", ""))
        modifier = rate_config.modifier_for(row.get("partition", ""))
        multiplier = modifier.multiplier if modifier else Decimal("1")

        cpu_hours = alloc_cpus * hours
        return UsageRecord(
            entity_key=row.get("account", ""),
            resource_class=row.get("partition", ""),
            quantity=cpu_hours * multiplier,
            kind=UsageKind.COMPUTE,
            detail={"job_id": job_id, "cpu_hours": cpu_hours, "state": normalize_state(row.get("state", ""))},
        )
