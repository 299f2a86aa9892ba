"""
Tests for artifact rendering and writing.

Tests cover:
- FOCUS CSV header, money formatting and Tags escaping
- WhatIf analysis document layout
- Run summary formats
- Atomic artifact writes
"""
import csv
import io
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from focus_export.schemas.billing import FocusRecord, FocusTags, RunSummary, UsageKind, UsageRecord
from focus_export.services.costs.aggregator import BillingAggregator
from focus_export.services.costs.metadata import MetadataResolver
from focus_export.services.costs.period import BillingPeriod
from focus_export.services.export.analysis import build_analysis_document, render_analysis_json
from focus_export.services.export.focus_csv import FOCUS_COLUMNS, render_focus_csv
from focus_export.services.export.summary import SummaryFormat, render_summary
from focus_export.services.export.writer import artifact_path, write_artifact
from focus_export.shared.core.exceptions import ConfigurationError


def make_record(**overrides) -> FocusRecord:
    values = dict(
        billing_period_start="2025-01-01",
        billing_period_end="2025-01-31",
        charge_period_start="2025-01-01",
        charge_period_end="2025-01-31",
        list_cost=Decimal("8"),
        billed_cost=Decimal("0"),
        resource_id="acct-a-gpu",
        resource_name="acct-a (gpu)",
        service_name="HPC Compute - GPU",
        tags=FocusTags(pi_email="pi.a@example.edu", project_id="PRJ-A", fund_org="F100"),
    )
    values.update(overrides)
    return FocusRecord(**values)


@pytest.fixture
def period():
    return BillingPeriod.parse("2025-01")


@pytest.fixture
def compute_result(compute_rates, compute_metadata, period):
    usage = [
        UsageRecord(
            entity_key="acct-a",
            resource_class="gpu",
            quantity=Decimal("800"),
            kind=UsageKind.COMPUTE,
            detail={"cpu_hours": Decimal("40")},
        ),
        UsageRecord(entity_key="acct-z", resource_class="gpu-free", quantity=Decimal("800"), kind=UsageKind.COMPUTE),
    ]
    return BillingAggregator(compute_rates, MetadataResolver(compute_metadata), period).run(usage)


class TestFocusCsv:
    def test_header_only_for_no_records(self):
        assert render_focus_csv([]) == ",".join(FOCUS_COLUMNS) + "\n"

    def test_row_layout(self):
        lines = render_focus_csv([make_record()]).splitlines()

        assert lines[0] == (
            "BillingPeriodStart,BillingPeriodEnd,ChargePeriodStart,ChargePeriodEnd,"
            "ListCost,BilledCost,ResourceId,ResourceName,ServiceName,Tags"
        )
        assert lines[1].startswith("2025-01-01,2025-01-31,2025-01-01,2025-01-31,8.00,0.00,acct-a-gpu,")

    def test_tags_are_compact_json_in_one_field(self):
        text = render_focus_csv([make_record()])
        row = list(csv.reader(io.StringIO(text)))[1]

        assert len(row) == 10
        assert row[9] == '{"pi_email":"pi.a@example.edu","project_id":"PRJ-A","fund_org":"F100"}'
        assert json.loads(row[9])["project_id"] == "PRJ-A"

    def test_commas_in_names_are_quoted(self):
        text = render_focus_csv([make_record(resource_name="Lab, Inc (gpu)")])
        row = list(csv.reader(io.StringIO(text)))[1]
        assert row[7] == "Lab, Inc (gpu)"

    def test_deterministic(self, compute_result):
        assert render_focus_csv(compute_result.records) == render_focus_csv(compute_result.records)


class TestAnalysisDocument:
    def test_layout(self, compute_result, period):
        generated = datetime(2025, 2, 1, 6, 0, tzinfo=timezone.utc)
        document = build_analysis_document(compute_result, period, UsageKind.COMPUTE, generated)

        assert document["metadata"]["mode"] == "WhatIf"
        assert document["metadata"]["billingPeriod"] == "2025-01"
        assert document["metadata"]["generatedAt"] == "2025-02-01T06:00:00+00:00"
        assert document["metadata"]["usageKind"] == "compute"
        assert document["metadata"]["recordCount"] == 2
        assert document["unknownEntities"] == ["acct-z"]
        assert document["warnings"][0]["code"] == "unknown_entity"
        assert document["totals"] == {"listCost": 16.0, "billedCost": 8.0, "subsidyAmount": 8.0}

    def test_records_carry_meta(self, compute_result, period):
        document = build_analysis_document(compute_result, period, UsageKind.COMPUTE)
        record = document["records"][0]

        assert record["ResourceId"] == "acct-a-gpu"
        assert record["ListCost"] == 8.0
        assert record["Tags"]["project_id"] == "PRJ-A"
        assert record["_meta"]["totalSU"] == 800.0
        assert record["_meta"]["cpuHours"] == 40.0

    def test_renders_valid_json(self, compute_result, period):
        text = render_analysis_json(compute_result, period, UsageKind.COMPUTE)
        assert json.loads(text)["metadata"]["processedCount"] == 0


class TestRunSummary:
    @pytest.fixture
    def summary(self):
        return RunSummary(
            total_list_cost=Decimal("16.00"),
            total_billed_cost=Decimal("8.00"),
            total_subsidy_amount=Decimal("8.00"),
            processed_count=10,
            skipped_count=2,
            record_count=2,
            unknown_entity_keys=["acct-z"],
        )

    def test_text(self, summary):
        text = render_summary(summary, SummaryFormat.TEXT)
        assert "Total list cost:  $16.00" in text
        assert "  - acct-z" in text

    def test_json(self, summary):
        data = json.loads(render_summary(summary, SummaryFormat.JSON))
        assert data["billed_cost"] == "8.00"
        assert data["unknown_entities"] == 1

    def test_kv(self, summary):
        lines = render_summary(summary, SummaryFormat.KV).splitlines()
        assert "records=2" in lines
        assert "subsidy_amount=8.00" in lines


class TestArtifactWriter:
    def test_artifact_names(self, tmp_path, period):
        assert artifact_path(tmp_path, "slurm", period).name == "slurm_2025-01.csv"
        assert artifact_path(tmp_path, "isilon", period, whatif=True).name == "isilon_2025-01_whatif.json"

    def test_write_creates_directory(self, tmp_path):
        path = write_artifact(tmp_path / "out" / "slurm_2025-01.csv", "a,b\n")
        assert path.read_text(encoding="utf-8") == "a,b\n"

    def test_overwrite_replaces_content(self, tmp_path):
        target = tmp_path / "slurm_2025-01.csv"
        write_artifact(target, "old\n")
        write_artifact(target, "new\n")
        assert target.read_text(encoding="utf-8") == "new\n"
        assert list(tmp_path.iterdir()) == [target]

    def test_failed_write_leaves_no_partial_file(self, tmp_path):
        target = tmp_path / "slurm_2025-01.csv"
        with patch("focus_export.services.export.writer.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                write_artifact(target, "data\n")

        assert list(tmp_path.iterdir()) == []

    def test_unwritable_parent(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(ConfigurationError):
            write_artifact(blocker / "slurm_2025-01.csv", "data\n")
