"""
Structured logging for intake-core.

The API, the saga and the recovery sweep all log through one structlog
pipeline. Every event carries ``service.name``, the ``log.logger`` name and
any correlation fields bound on the current task (``request_id`` from the
request-id middleware, ``submission_id`` during a sweep).

Usage::

    configure_logging(level="INFO", json_format=True)
    logger = get_logger(__name__)
    logger.info("stage_failed", stage="issue", attempts=4)

JSON output uses ECS field names (``@timestamp``, ``log.level``) so lines can
be shipped to Elasticsearch unchanged. Console output is used on a tty when
``json_format`` is left as ``None``.

Client addresses are rate-limit keys only and must not reach log output;
the pipeline drops any of ``CLIENT_ADDRESS_KEYS`` before rendering.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

CLIENT_ADDRESS_KEYS = frozenset({"client_ip", "client_host", "remote_addr", "forwarded_for"})

_ECS_RENAMES = {"timestamp": "@timestamp", "level": "log.level"}


class _ServiceStamp:
    """Processor that tags each event with the service it came from."""

    def __init__(self, service: str):
        self.service = service

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        return event_dict


def _drop_client_addresses(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key in CLIENT_ADDRESS_KEYS.intersection(event_dict):
        del event_dict[key]
    return event_dict


def _rename_for_ecs(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for plain, ecs in _ECS_RENAMES.items():
        if plain in event_dict:
            event_dict[ecs] = event_dict.pop(plain)
    return event_dict


def _build_pipeline(service: str, json_format: bool) -> list[Processor]:
    pipeline: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _ServiceStamp(service),
        _drop_client_addresses,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if not json_format:
        pipeline.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
        return pipeline

    pipeline += [
        _rename_for_ecs,
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]
    return pipeline


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "intake-core",
) -> None:
    """Install the intake structlog pipeline.

    Args:
        level: Minimum level name (``DEBUG`` .. ``CRITICAL``).
        json_format: JSON lines when true, console rendering when false.
            ``None`` picks JSON unless stdout is a terminal.
        service: Value written to ``service.name``.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    if json_format is None:
        json_format = not sys.stdout.isatty()

    structlog.configure(
        processors=_build_pipeline(service, json_format),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through the stdlib; keep their level in step.
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level, force=True)


def get_logger(name: str | None = None) -> Any:
    """A lazy structlog logger; ``name`` is rendered as ``log.logger``."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(**{"log.logger": name})


class LogContext:
    """Bind correlation fields for the duration of a ``with`` / ``async with`` block.

    Previous values are restored on exit, so nested contexts that rebind the
    same key (a sweep running inside a request) unwind correctly.
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._tokens: dict[str, Any] = {}

    def _push(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self.fields)
        return self

    def _pop(self) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)
        self._tokens = {}

    def __enter__(self) -> LogContext:
        return self._push()

    def __exit__(self, *exc_info: object) -> None:
        self._pop()

    async def __aenter__(self) -> LogContext:
        return self._push()

    async def __aexit__(self, *exc_info: object) -> None:
        self._pop()


__all__ = ["CLIENT_ADDRESS_KEYS", "LogContext", "configure_logging", "get_logger"]
