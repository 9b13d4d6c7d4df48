"""structlog + stdlib logging setup for the engine and its CLI.

Both ``structlog.get_logger()`` and plain ``logging.getLogger(__name__)``
calls (SQLAlchemy, the Gemini SDK) end up in the same handler, rendered
either as JSON lines or with the coloured console renderer.
"""

import logging
import sys

import structlog

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("google_genai", "httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def configure_logging(json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_output: Render JSON lines when ``True``, coloured console
            output otherwise.
        log_level: Root log level name (``"DEBUG"``, ``"INFO"``, ...).
    """
    level = getattr(logging, log_level.upper())
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Logs go to stderr so the CLI can keep stdout for its JSON result
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
