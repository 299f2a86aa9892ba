import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import structlog

from focus_export.schemas.billing import RateConfig, UsageKind, UsageRecord
from focus_export.services.costs.accumulator import RunAccumulator
from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.exceptions import AdapterError, ConfigurationError

logger = structlog.get_logger()


class UsageAdapter(ABC):
    """
    Abstract Base Class for usage sources.

    Standardizes the interface for:
    - Raw retrieval (external accounting command, or a captured file)
    - Parsing into source-native rows
    - Normalization into UsageRecords
    """

    kind: UsageKind
    source_name: str

    def __init__(
        self,
        binary: str,
        source_file: Optional[str] = None,
        timeout_seconds: int = 300,
    ):
        self.binary = binary
        self.source_file = Path(source_file) if source_file else None
        self.timeout_seconds = timeout_seconds

    def verify_dependencies(self) -> None:
        """Ensure the accounting command (or captured file) is available."""
        if self.source_file is not None:
            if not self.source_file.is_file():
                raise ConfigurationError(
                    f"Usage file not found: {self.source_file}",
                    details={"path": str(self.source_file)},
                )
            return
        if shutil.which(self.binary) is None:
            raise AdapterError(
                f"'{self.binary}' command not found. Provide a captured usage file instead.",
                details={"binary": self.binary},
            )

    def fetch_raw(self, period: BillingPeriod, rate_config: RateConfig) -> str:
        """Return the raw accounting output for the period."""
        if self.source_file is not None:
            logger.info("usage_source_file", source=self.source_name, path=str(self.source_file))
            return self.source_file.read_text(encoding="utf-8")
        return self._run_command(self.build_command(period, rate_config))

    def _run_command(self, command: Sequence[str]) -> str:
        logger.info("usage_query_started", source=self.source_name, command=command[0])
        try:
            completed = subprocess.run(
                list(command),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as e:
            raise AdapterError(f"'{command[0]}' command not found", details={"binary": command[0]}) from e
        except subprocess.TimeoutExpired as e:
            raise AdapterError(
                f"'{command[0]}' did not finish within {self.timeout_seconds}s",
                details={"binary": command[0]},
            ) from e

        if completed.returncode != 0:
            raise AdapterError(
                f"'{command[0]}' exited with status {completed.returncode}: {completed.stderr}",
                details={"binary": command[0], "returncode": completed.returncode},
            )
        return completed.stdout

    def collect(
        self,
        period: BillingPeriod,
        rate_config: RateConfig,
        accumulator: RunAccumulator,
    ) -> List[UsageRecord]:
        """Fetch, parse and normalize usage for one billing period."""
        rows = self.parse(self.fetch_raw(period, rate_config))
        records = self.to_usage_records(rows, rate_config, accumulator)
        logger.info(
            "usage_collected",
            source=self.source_name,
            rows=len(rows),
            usage_records=len(records),
            skipped=accumulator.skipped_count,
        )
        return records

    @abstractmethod
    def build_command(self, period: BillingPeriod, rate_config: RateConfig) -> List[str]:
        """Command line for querying the accounting source directly."""
        pass

    @abstractmethod
    def parse(self, raw: str) -> List[Dict[str, Any]]:
        """Parse raw accounting output into source-native rows."""
        pass

    @abstractmethod
    def to_usage_records(
        self,
        rows: List[Dict[str, Any]],
        rate_config: RateConfig,
        accumulator: RunAccumulator,
    ) -> List[UsageRecord]:
        """Normalize rows into UsageRecords, recording skips and warnings."""
        pass
