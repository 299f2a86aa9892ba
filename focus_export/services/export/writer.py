import os
import tempfile
from pathlib import Path

import structlog

from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()


def artifact_path(output_dir: Path, source: str, period: BillingPeriod, whatif: bool = False) -> Path:
    """slurm_2025-01.csv, or slurm_2025-01_whatif.json in WhatIf mode."""
    suffix = "_whatif.json" if whatif else ".csv"
    return Path(output_dir) / f"{source}_{period.label}{suffix}"


def write_artifact(path: Path, text: str) -> Path:
    """
    Write the artifact atomically: a failed run never leaves a partial file
    at the final path.
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Cannot create output directory {path.parent}: {e}") from e

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise ConfigurationError(f"Output directory {path.parent} is not writable: {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info("artifact_written", path=str(path), bytes=len(text.encode("utf-8")))
    return path
