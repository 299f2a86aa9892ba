import sys
import logging
import structlog
from focus_export.shared.core.config import get_settings

PII_FIELDS = {"email", "pi_email", "piEmail", "password", "token", "secret"}


def pii_redactor(logger, method_name, event_dict):
    """
    Redact PI contact details and secrets from logs.
    Billing artifacts carry PI emails; the log stream must not.
    """
    for field in PII_FIELDS:
        if field in event_dict:
            event_dict[field] = "[REDACTED]"

    for container in ["metadata", "details", "tags", "context"]:
        if container in event_dict and isinstance(event_dict[container], dict):
            nested = dict(event_dict[container])
            for field in PII_FIELDS:
                if field in nested:
                    nested[field] = "[REDACTED]"
            event_dict[container] = nested

    return event_dict


def _stderr_logger(*args):
    # Resolve sys.stderr at call time so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False):
    settings = get_settings()

    # 1. Choose the renderer based on environment
    if settings.LOG_FORMAT == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()
    min_level = logging.DEBUG if (verbose or settings.DEBUG) else logging.INFO

    # 2. Configure the processor pipeline
    processors = [
        structlog.contextvars.merge_contextvars,      # run_id / usage_kind / period
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        pii_redactor,
        renderer
    ]

    # 3. Logs go to stderr; artifacts and summaries are the only other output
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

    # 4. Route stdlib logging (pandas, etc.) to the same stream and level
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
    )


def bind_run_context(**context):
    """Bind run-scoped fields (run_id, usage_kind, period) to every log line."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)
