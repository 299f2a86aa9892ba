"""
Billing configuration loading.

Reads the per-exporter JSON files from the config directory and validates them
into RateConfig / MetadataRecord models:

    compute: tiers.json     + accounts.json  ({"accounts": {...}})
    storage: rates.json     + projects.json  ({"projects": {...}})

Any missing, malformed or invalid file raises ConfigurationError before a
single usage record is read.
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Tuple

import structlog
from pydantic import ValidationError

from focus_export.schemas.billing import MetadataRecord, RateConfig, ResourceClassModifier, UsageKind
from focus_export.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()

CONFIG_FILES: Dict[UsageKind, Tuple[str, str]] = {
    UsageKind.COMPUTE: ("tiers.json", "accounts.json"),
    UsageKind.STORAGE: ("rates.json", "projects.json"),
}
METADATA_ROOT_KEYS = {
    UsageKind.COMPUTE: "accounts",
    UsageKind.STORAGE: "projects",
}

DEFAULT_COMPUTE_SERVICE = "HPC Compute"
DEFAULT_SU_RATE = Decimal("0.01")
DEFAULT_BILLABLE_STATES = ["COMPLETED"]
DEFAULT_STORAGE_SERVICE = "HPC Storage - Project"
DEFAULT_RATE_PER_TB = Decimal("10.00")
DEFAULT_FREE_GB = Decimal("500")


def read_json_file(path: Path) -> Any:
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}", details={"path": str(path)})
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in {path}: {e.msg} (line {e.lineno})",
            details={"path": str(path)},
        ) from e


def _require_object(data: Any, path: Path) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object", details={"path": str(path)})
    if not data:
        raise ConfigurationError(f"{path} has no entries", details={"path": str(path)})
    return data


def parse_compute_rates(data: Dict[str, Any]) -> RateConfig:
    partitions = data.get("partitions") or {}
    if not isinstance(partitions, dict):
        raise ValueError("'partitions' must be an object keyed by partition name")

    resource_classes = {}
    for name, entry in partitions.items():
        entry = entry or {}
        resource_classes[name] = ResourceClassModifier(
            multiplier=entry.get("suMultiplier", Decimal("1")),
            subsidy_percent=entry.get("subsidyPercent", Decimal("0")),
            description=entry.get("description"),
        )

    rates = data.get("rates") or {}
    return RateConfig(
        kind=UsageKind.COMPUTE,
        service_name=data.get("serviceName") or DEFAULT_COMPUTE_SERVICE,
        base_rate=rates.get("suRate", DEFAULT_SU_RATE),
        resource_classes=resource_classes,
        excluded_entities=set(data.get("excludeAccounts") or []),
        billable_states=list(data.get("billableStates") or DEFAULT_BILLABLE_STATES),
    )


def parse_storage_rates(data: Dict[str, Any]) -> RateConfig:
    return RateConfig(
        kind=UsageKind.STORAGE,
        service_name=data.get("serviceName") or DEFAULT_STORAGE_SERVICE,
        base_rate=data.get("ratePerTBMonth", DEFAULT_RATE_PER_TB),
        free_allowance_gb=data.get("freeGBPerProject", DEFAULT_FREE_GB),
        excluded_entities=set(data.get("excludePaths") or []),
    )


RATE_PARSERS = {
    UsageKind.COMPUTE: parse_compute_rates,
    UsageKind.STORAGE: parse_storage_rates,
}


def load_rate_config(kind: UsageKind, config_dir: Path) -> RateConfig:
    path = Path(config_dir) / CONFIG_FILES[kind][0]
    data = _require_object(read_json_file(path), path)
    try:
        rate_config = RATE_PARSERS[kind](data)
    except (ValidationError, ValueError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Invalid rate config in {path}: {e}", details={"path": str(path)}) from e

    logger.debug(
        "rate_config_loaded",
        path=str(path),
        service_name=rate_config.service_name,
        base_rate=str(rate_config.base_rate),
        resource_classes=sorted(rate_config.resource_classes),
    )
    return rate_config


def load_metadata(kind: UsageKind, config_dir: Path) -> Dict[str, MetadataRecord]:
    path = Path(config_dir) / CONFIG_FILES[kind][1]
    data = read_json_file(path)
    root_key = METADATA_ROOT_KEYS[kind]

    entries = data.get(root_key) if isinstance(data, dict) else None
    if not isinstance(entries, dict):
        raise ConfigurationError(
            f"{path} must contain a '{root_key}' object keyed by entity",
            details={"path": str(path)},
        )

    try:
        records = {key: MetadataRecord.model_validate(value or {}) for key, value in entries.items()}
    except ValidationError as e:
        raise ConfigurationError(f"Invalid metadata in {path}: {e}", details={"path": str(path)}) from e

    logger.debug("metadata_loaded", path=str(path), entities=len(records))
    return records
