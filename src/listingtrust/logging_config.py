# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for the CLI and embedding hosts.

Leaf module: no listingtrust imports. Modules log through
``logging.getLogger("listingtrust.<name>")``; this bridge renders those
records either as console lines or as JSON lines (one per pass / lookup).
"""

from __future__ import annotations

import json
import logging
import sys

import structlog

# Third-party loggers that report every request at INFO.
_NOISY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def _json_dumps(obj, **kwargs) -> str:
    # Titles and brand names are often Japanese; keep them readable.
    return json.dumps(obj, ensure_ascii=False, **kwargs)


def configure(*, json_output: bool = False, level: str | int = "INFO") -> None:
    """Install the structlog formatter on the root logger (stderr).

    Args:
        json_output: True for JSON lines, False for human-readable console output.
        level: Root logger level name or number (default INFO).
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    pre_chain: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer(serializer=_json_dumps)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
