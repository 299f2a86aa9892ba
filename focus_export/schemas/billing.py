"""
Billing Schemas - Usage, Pricing and FOCUS Output Contracts
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, ConfigDict, Field


class UsageKind(str, Enum):
    """Which quantity derivation and cost formula apply to a usage source."""
    COMPUTE = "compute"  # Slurm job allocations, quantity in SUs
    STORAGE = "storage"  # Isilon quota snapshots, quantity in bytes


class WarningCode(str, Enum):
    INVALID_USAGE = "invalid_usage"
    UNKNOWN_ENTITY = "unknown_entity"
    UNRECOGNIZED_RESOURCE_CLASS = "unrecognized_resource_class"


class UsageRecord(BaseModel):
    """One observed consumption event, normalized from an accounting source."""
    model_config = ConfigDict(frozen=True)

    entity_key: str = Field(..., description="Billed party: Slurm account or storage path")
    resource_class: str = Field(..., description="Partition name, or 'storage'")
    quantity: Decimal = Field(..., ge=0, description="SUs for compute, bytes for storage")
    kind: UsageKind
    detail: Dict[str, Any] = Field(default_factory=dict)


class ResourceClassModifier(BaseModel):
    """Per-partition pricing knobs."""
    multiplier: Decimal = Field(Decimal("1"), ge=0)
    subsidy_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    description: Optional[str] = None


class RateConfig(BaseModel):
    """Pricing configuration, loaded once per run."""
    kind: UsageKind
    service_name: str = Field(..., min_length=1)
    base_rate: Decimal = Field(..., ge=0, description="Cost per SU, or per TB-month")
    resource_classes: Dict[str, ResourceClassModifier] = Field(default_factory=dict)
    free_allowance_gb: Optional[Decimal] = Field(None, ge=0, description="Per-entity free tier (storage)")
    excluded_entities: Set[str] = Field(default_factory=set)
    billable_states: List[str] = Field(default_factory=list)

    def modifier_for(self, resource_class: str) -> Optional[ResourceClassModifier]:
        return self.resource_classes.get(resource_class)


class MetadataRecord(BaseModel):
    """Responsible party for an entity (account or storage path)."""
    model_config = ConfigDict(populate_by_name=True)

    pi_email: str = Field("", alias="piEmail")
    project_id: str = Field("", alias="projectId")
    fund_org: str = Field("", alias="fundOrg")

    @property
    def is_complete(self) -> bool:
        """A known entity carries all three of PI email, project id and fund org."""
        return bool(self.pi_email and self.project_id and self.fund_org)


class FocusTags(BaseModel):
    pi_email: str = ""
    project_id: str = ""
    fund_org: str = ""


class BillingWarning(BaseModel):
    """A per-record condition surfaced for operator review."""
    code: WarningCode
    message: str
    entity_key: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


class FocusRecord(BaseModel):
    """One FOCUS billing row."""
    billing_period_start: str
    billing_period_end: str
    charge_period_start: str
    charge_period_end: str
    list_cost: Decimal = Field(..., ge=0)
    billed_cost: Decimal = Field(..., ge=0)
    resource_id: str
    resource_name: str
    service_name: str
    tags: FocusTags
    meta: Dict[str, Any] = Field(default_factory=dict)


class RunSummary(BaseModel):
    """Aggregate result of one billing pass."""
    total_list_cost: Decimal = Decimal("0.00")
    total_billed_cost: Decimal = Decimal("0.00")
    total_subsidy_amount: Decimal = Decimal("0.00")
    processed_count: int = 0
    skipped_count: int = 0
    record_count: int = 0
    unknown_entity_keys: List[str] = Field(default_factory=list)
    warnings: List[BillingWarning] = Field(default_factory=list)
