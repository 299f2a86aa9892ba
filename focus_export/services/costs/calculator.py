"""
Cost Calculator

Pure pricing functions: (quantity, RateConfig, resource class) -> list/billed cost.

Compute (quantity in Service Units):
    list   = round(SU * base_rate)
    billed = round(list * (1 - subsidy_percent / 100))

Storage (quantity in bytes, free allowance applied per entity in GB):
    list   = bytes / 2**40 * rate_per_tb
    billed = max(0, bytes / 2**30 - free_gb) / 1024 * rate_per_tb

Costs are rounded to the currency minor unit (ROUND_HALF_UP); quantities
(SUs, bytes, GB, TB) never are. List cost always reflects the full usage value.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional

from focus_export.schemas.billing import RateConfig, UsageKind
from focus_export.shared.core.exceptions import InvalidUsageError
from focus_export.shared.core.precision import ZERO, quantize_money

BYTES_PER_GB = Decimal(2 ** 30)
BYTES_PER_TB = Decimal(2 ** 40)
GB_PER_TB = Decimal(1024)
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class CostBreakdown:
    """Rounded costs plus the unrounded inputs shown in the analysis output."""
    list_cost: Decimal
    billed_cost: Decimal
    subsidy_percent: Decimal = ZERO
    usage_gb: Optional[Decimal] = None
    billable_gb: Optional[Decimal] = None

    @property
    def subsidy_amount(self) -> Decimal:
        return self.list_cost - self.billed_cost


def _compute_cost(quantity: Decimal, rate_config: RateConfig, resource_class: str) -> CostBreakdown:
    modifier = rate_config.modifier_for(resource_class)
    subsidy_percent = modifier.subsidy_percent if modifier else ZERO

    list_cost = quantize_money(quantity * rate_config.base_rate)
    # Subsidy applies to the emitted list cost so the two columns reconcile
    billed_cost = quantize_money(list_cost * (1 - subsidy_percent / HUNDRED))

    return CostBreakdown(
        list_cost=list_cost,
        billed_cost=billed_cost,
        subsidy_percent=subsidy_percent,
    )


def _storage_cost(quantity: Decimal, rate_config: RateConfig, resource_class: str) -> CostBreakdown:
    free_gb = rate_config.free_allowance_gb or ZERO

    usage_gb = quantity / BYTES_PER_GB
    usage_tb = quantity / BYTES_PER_TB
    list_raw = usage_tb * rate_config.base_rate

    billable_gb = max(ZERO, usage_gb - free_gb)
    billed_raw = (billable_gb / GB_PER_TB) * rate_config.base_rate

    return CostBreakdown(
        list_cost=quantize_money(list_raw),
        billed_cost=quantize_money(billed_raw),
        usage_gb=usage_gb,
        billable_gb=billable_gb,
    )


FORMULAS: Dict[UsageKind, Callable[[Decimal, RateConfig, str], CostBreakdown]] = {
    UsageKind.COMPUTE: _compute_cost,
    UsageKind.STORAGE: _storage_cost,
}


def calculate_cost(quantity: Decimal, rate_config: RateConfig, resource_class: str) -> CostBreakdown:
    """
    Price a (possibly aggregated) quantity under the formula for rate_config.kind.

    Raises:
        InvalidUsageError: quantity is negative. Negative usage is never clamped.
    """
    if quantity < 0:
        raise InvalidUsageError(
            f"Negative quantity {quantity} for resource class '{resource_class}'",
            details={"quantity": str(quantity), "resource_class": resource_class},
        )
    return FORMULAS[rate_config.kind](quantity, rate_config, resource_class)
