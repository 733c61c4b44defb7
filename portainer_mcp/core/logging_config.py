"""Logging configuration for Portainer MCP server with dual output (console + files)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter


def setup_logging(
    log_dir: Path | str | None = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files:
    - mcp_server.log: General server operations and Portainer calls
    - middleware.log: Middleware request/response tracking

    The console handler writes to stderr; stdout belongs to the stdio transport.

    Args:
        log_dir: Directory for log files (None for console-only logging)
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stderr.isatty()
        else structlog.processors.JSONRenderer()
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        for logger_name, file_name in (("server", "mcp_server.log"), ("middleware", "middleware.log")):
            file_handler = RotatingFileHandler(
                log_dir / file_name,
                maxBytes=max_bytes,
                backupCount=0,  # Don't keep old files, just truncate
                encoding="utf-8",
            )
            file_handler.setLevel(log_level_num)
            file_handler.setFormatter(
                ProcessorFormatter(processor=structlog.processors.JSONRenderer())
            )
            named_logger = logging.getLogger(logger_name)
            named_logger.handlers.clear()
            named_logger.addHandler(file_handler)
            named_logger.propagate = True  # Also send to console via root logger

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_server_logger().info(
        "Logging system initialized",
        log_dir=str(Path(log_dir).absolute()) if log_dir is not None else None,
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
    )


def get_server_logger() -> Any:
    """Get logger for general server operations (writes to mcp_server.log)."""
    return structlog.get_logger("server")


def get_middleware_logger() -> Any:
    """Get logger for middleware operations (writes to middleware.log)."""
    return structlog.get_logger("middleware")
