import re
from typing import Optional, Dict, Any


class FocusExportException(Exception):
    """Base exception for all billing export errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(FocusExportException):
    """
    Raised when a required configuration file is missing, malformed,
    or fails validation. Fatal: the run aborts before any usage is processed.
    """
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class InvalidUsageError(FocusExportException):
    """
    Raised for a single unusable usage record (malformed elapsed time,
    negative or unparseable quantity). The caller skips the record and continues.
    """
    def __init__(self, message: str, code: str = "invalid_usage", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class AdapterError(FocusExportException):
    """
    Raised when an external accounting command (sacct, isi) fails.
    Credentials echoed back on the command's stderr are redacted.
    """
    def __init__(self, message: str, code: str = "adapter_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(self._sanitize(message), code=code, details=details)

    def _sanitize(self, msg: str) -> str:
        msg = re.sub(r'(?i)(password|passwd|token|secret)=[^&\s]+', r'\1=[REDACTED]', msg)
        if "Permission denied" in msg or "not authorized" in msg.lower():
            return "Permission denied: the export user cannot read the accounting source."
        return msg.strip()
