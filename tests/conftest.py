import os
# Keep tests independent of any developer .env / shell overrides
os.environ["FOCUS_EXPORT_TESTING"] = "True"
os.environ.pop("FOCUS_EXPORT_CONFIG_DIR", None)
os.environ.pop("FOCUS_EXPORT_OUTPUT_DIR", None)

import json
from decimal import Decimal
from pathlib import Path

import pytest

from focus_export.schemas.billing import (
    MetadataRecord,
    RateConfig,
    ResourceClassModifier,
    UsageKind,
)
from focus_export.shared.core.config import get_settings

TIERS = {
    "serviceName": "HPC Compute",
    "rates": {"suRate": 0.01},
    "partitions": {
        "gpu": {"suMultiplier": 20, "subsidyPercent": 0, "description": "GPU"},
        "gpu-free": {"suMultiplier": 20, "subsidyPercent": 100, "description": "GPU (subsidized)"},
        "standard": {"suMultiplier": 1, "subsidyPercent": 25, "description": "Standard"},
    },
    "billableStates": ["COMPLETED", "FAILED", "TIMEOUT"],
    "excludeAccounts": ["root"],
}

ACCOUNTS = {
    "accounts": {
        "acct-a": {"piEmail": "pi.a@example.edu", "projectId": "PRJ-A", "fundOrg": "F100"},
        "acct-b": {"piEmail": "pi.b@example.edu", "projectId": "PRJ-B", "fundOrg": ""},
    }
}

RATES = {
    "serviceName": "HPC Storage - Project",
    "ratePerTBMonth": 10.00,
    "freeGBPerProject": 500,
    "excludePaths": ["/ifs/scratch"],
}

PROJECTS = {
    "projects": {
        "/ifs/data/genomics": {"piEmail": "pi.g@example.edu", "projectId": "GEN-1", "fundOrg": "F200"},
    }
}


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def fresh_settings():
    """Settings are cached per process; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def config_dir(tmp_path):
    """Config directory with both compute and storage files."""
    directory = tmp_path / "config"
    directory.mkdir()
    write_json(directory / "tiers.json", TIERS)
    write_json(directory / "accounts.json", ACCOUNTS)
    write_json(directory / "rates.json", RATES)
    write_json(directory / "projects.json", PROJECTS)
    return directory


@pytest.fixture
def compute_rates():
    return RateConfig(
        kind=UsageKind.COMPUTE,
        service_name="HPC Compute",
        base_rate=Decimal("0.01"),
        resource_classes={
            "gpu": ResourceClassModifier(multiplier=Decimal("20"), description="GPU"),
            "gpu-free": ResourceClassModifier(
                multiplier=Decimal("20"), subsidy_percent=Decimal("100"), description="GPU (subsidized)"
            ),
            "standard": ResourceClassModifier(multiplier=Decimal("1"), subsidy_percent=Decimal("25")),
        },
        excluded_entities={"root"},
        billable_states=["COMPLETED", "FAILED", "TIMEOUT"],
    )


@pytest.fixture
def storage_rates():
    return RateConfig(
        kind=UsageKind.STORAGE,
        service_name="HPC Storage - Project",
        base_rate=Decimal("10.00"),
        free_allowance_gb=Decimal("500"),
        excluded_entities={"/ifs/scratch"},
    )


@pytest.fixture
def compute_metadata():
    return {key: MetadataRecord.model_validate(value) for key, value in ACCOUNTS["accounts"].items()}


@pytest.fixture
def storage_metadata():
    return {key: MetadataRecord.model_validate(value) for key, value in PROJECTS["projects"].items()}
