import calendar
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from focus_export.shared.core.exceptions import ConfigurationError

PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class BillingPeriod:
    """A calendar month, e.g. 2025-01."""
    year: int
    month: int

    @classmethod
    def parse(cls, value: str) -> "BillingPeriod":
        match = PERIOD_PATTERN.match((value or "").strip())
        if not match:
            raise ConfigurationError(
                "Period must be in YYYY-MM format",
                details={"period": value},
            )
        year, month = int(match.group(1)), int(match.group(2))
        if not 1 <= month <= 12:
            raise ConfigurationError(
                f"Period month must be between 01 and 12, got {month:02d}",
                details={"period": value},
            )
        return cls(year=year, month=month)

    @classmethod
    def previous(cls, today: Optional[date] = None) -> "BillingPeriod":
        """The last complete month before `today`."""
        today = today or date.today()
        if today.month == 1:
            return cls(year=today.year - 1, month=12)
        return cls(year=today.year, month=today.month - 1)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        """Last day of the month (inclusive)."""
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def query_end(self) -> date:
        """First day of the next month, the exclusive bound for accounting queries."""
        if self.month == 12:
            return date(self.year + 1, 1, 1)
        return date(self.year, self.month + 1, 1)
