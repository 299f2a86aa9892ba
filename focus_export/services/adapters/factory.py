from typing import Optional

from focus_export.schemas.billing import UsageKind
from focus_export.services.adapters.base import UsageAdapter
from focus_export.services.adapters.isilon import IsilonAdapter
from focus_export.services.adapters.slurm import SlurmAdapter
from focus_export.shared.core.config import Settings
from focus_export.shared.core.exceptions import ConfigurationError


class AdapterFactory:
    """Selects the usage adapter for a usage kind."""

    @staticmethod
    def get_adapter(kind: UsageKind, settings: Settings, source_file: Optional[str] = None) -> UsageAdapter:
        if kind == UsageKind.COMPUTE:
            return SlurmAdapter(
                binary=settings.SACCT_BINARY,
                source_file=source_file,
                timeout_seconds=settings.COMMAND_TIMEOUT_SECONDS,
            )
        if kind == UsageKind.STORAGE:
            return IsilonAdapter(
                binary=settings.ISI_BINARY,
                source_file=source_file,
                timeout_seconds=settings.COMMAND_TIMEOUT_SECONDS,
            )
        raise ConfigurationError(f"Unsupported usage kind: {kind}")
