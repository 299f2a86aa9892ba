import re
from typing import Dict, Mapping

from focus_export.schemas.billing import FocusTags, MetadataRecord, WarningCode
from focus_export.services.costs.accumulator import RunAccumulator

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_project_id(entity_key: str) -> str:
    """
    Fallback project identifier for entities with no metadata.
    The whole key is kept so distinct paths stay distinct
    (/ifs/data/genomics -> ifs-data-genomics).
    """
    candidate = _UNSAFE_ID_CHARS.sub("-", entity_key).strip("-")
    return candidate or "unknown"


class MetadataResolver:
    """
    Exact-match lookup of PI / project / fund metadata by entity key.

    Never fails: unknown entities get fallback tags and are recorded on the
    run accumulator for operator review.
    """

    def __init__(self, records: Mapping[str, MetadataRecord]):
        self._records: Dict[str, MetadataRecord] = dict(records)

    def __len__(self) -> int:
        return len(self._records)

    def resolve(self, entity_key: str, accumulator: RunAccumulator) -> FocusTags:
        record = self._records.get(entity_key)
        if record is not None and record.is_complete:
            return FocusTags(
                pi_email=record.pi_email,
                project_id=record.project_id,
                fund_org=record.fund_org,
            )

        # Partial records keep whatever fields they do carry
        partial = record or MetadataRecord()
        if accumulator.flag_unknown_entity(entity_key):
            accumulator.warn(
                WarningCode.UNKNOWN_ENTITY,
                f"'{entity_key}' has no complete metadata entry, using fallback project id",
                entity_key=entity_key,
                context={"partial": record is not None},
            )
        return FocusTags(
            pi_email=partial.pi_email,
            project_id=partial.project_id or sanitize_project_id(entity_key),
            fund_org=partial.fund_org,
        )
