from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from focus_export.schemas.billing import BillingWarning, WarningCode

logger = structlog.get_logger()


@dataclass
class RunAccumulator:
    """
    Per-run diagnostics threaded explicitly through ingestion, metadata
    resolution and aggregation, then folded into the RunSummary.
    """
    processed_count: int = 0
    skipped_count: int = 0
    warnings: List[BillingWarning] = field(default_factory=list)
    unknown_entity_keys: List[str] = field(default_factory=list)

    def record_processed(self) -> None:
        self.processed_count += 1

    def record_skipped(self, reason: str, entity_key: Optional[str] = None, **context: Any) -> None:
        self.skipped_count += 1
        logger.debug("usage_record_skipped", reason=reason, entity_key=entity_key, **context)

    def warn(
        self,
        code: WarningCode,
        message: str,
        entity_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.warnings.append(
            BillingWarning(code=code, message=message, entity_key=entity_key, context=context or {})
        )
        logger.warning(code.value, message=message, entity_key=entity_key, context=context or {})

    def flag_unknown_entity(self, entity_key: str) -> bool:
        """Add entity_key to the unknown list once. Returns True on first sighting."""
        if entity_key in self.unknown_entity_keys:
            return False
        self.unknown_entity_keys.append(entity_key)
        return True
