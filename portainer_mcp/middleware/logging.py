"""Logging middleware for Portainer MCP server using FastMCP Middleware base class."""

import time
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger
from .sanitize import REDACTED, is_sensitive_field, redact


class LoggingMiddleware(Middleware):
    """FastMCP middleware for request/response logging.

    Logs all MCP messages to both console and middleware.log with:
    - Request details with sanitized parameters
    - Response status and timing
    - Error details and stack traces
    """

    def __init__(self, include_payloads: bool = True, max_payload_length: int = 1000):
        """Initialize logging middleware.

        Args:
            include_payloads: Whether to include request payloads in logs
            max_payload_length: Maximum length for payload strings before truncation
        """
        self.logger = get_middleware_logger()
        self.include_payloads = include_payloads
        self.max_payload_length = max_payload_length

    async def on_message(self, context: MiddlewareContext, call_next):
        """Log all MCP messages with timing and outcome."""
        start_time = time.time()

        log_data = {
            "method": context.method,
            "source": context.source,
            "message_type": context.type,
            "timestamp": context.timestamp,
        }

        if self.include_payloads and hasattr(context.message, "__dict__"):
            log_data["params"] = self._sanitize_message(context.message)

        self.logger.info("MCP request started", **log_data)

        try:
            result = await call_next(context)

            duration_ms = round((time.time() - start_time) * 1000, 2)
            self.logger.info(
                "MCP request completed",
                method=context.method,
                success=True,
                duration_ms=duration_ms,
            )

            return result

        except Exception as e:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            self.logger.error(
                "MCP request failed",
                method=context.method,
                success=False,
                duration_ms=duration_ms,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise

    def _sanitize_message(self, message: Any) -> dict[str, Any]:
        """Sanitize message data for safe logging.

        Args:
            message: The MCP message object to sanitize

        Returns:
            Dictionary with sanitized message data
        """
        if not hasattr(message, "__dict__"):
            return {"message": str(message)[:self.max_payload_length]}

        sanitized: dict[str, Any] = {}

        for key, value in message.__dict__.items():
            if key.startswith("_"):
                continue

            if is_sensitive_field(key):
                sanitized[key] = REDACTED
            elif isinstance(value, str):
                sanitized[key] = self._truncate(value)
            elif isinstance(value, dict | list):
                # Tool arguments arrive as a nested mapping
                cleaned = redact(value)
                str_value = str(cleaned)
                if len(str_value) > self.max_payload_length:
                    sanitized[key] = self._truncate(str_value)
                else:
                    sanitized[key] = cleaned
            else:
                sanitized[key] = value

        return sanitized

    def _truncate(self, value: str) -> str:
        if len(value) > self.max_payload_length:
            return value[:self.max_payload_length] + "... [TRUNCATED]"
        return value
