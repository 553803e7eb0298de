import logging
import typing as t
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

PACKAGE_LOGGER = "batch_ai"
SECRET_KEYS = frozenset({"api_key", "authorization", "x-api-key"})
MASK = "***"


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    return {key: MASK for key in headers}


def redact_secrets(
    logger: t.Any, method_name: str, event_dict: dict[str, t.Any]
) -> dict[str, t.Any]:
    """structlog processor hiding credential values bound to a log event."""
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = MASK
    return event_dict


def setup_logging(level: int = logging.DEBUG, *, json_logs: bool = False) -> None:
    """
    Route batch-ai log events through structlog.

    Parameters
    ----------
    level : int, optional
        Level of the ``batch_ai`` standard library logger.
    json_logs : bool, optional
        Render one JSON object per event instead of colored console lines.
    """
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@contextmanager
def logging_context(**fields: t.Any) -> Iterator[None]:
    """
    Bind batch operation fields (provider, model, batch id) for nested log events.

    Fields already bound by an enclosing operation and ``None`` values are skipped.
    """
    bound = structlog.contextvars.get_contextvars()
    new_fields = {
        name: value for name, value in fields.items() if value is not None and name not in bound
    }
    if not new_fields:
        yield
        return
    with structlog.contextvars.bound_contextvars(**new_fields):
        yield
