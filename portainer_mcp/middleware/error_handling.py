"""Error handling middleware for Portainer MCP server."""

from collections import defaultdict
from typing import Any

from fastmcp.exceptions import NotFoundError
from fastmcp.server.middleware import Middleware, MiddlewareContext
from fastmcp.tools import ToolResult

from ..core.exceptions import PortainerAPIError, UnknownToolError
from ..core.logging_config import get_middleware_logger
from ..tools.dispatcher import failure_result
from .sanitize import is_sensitive_field


class ErrorHandlingMiddleware(Middleware):
    """FastMCP middleware for error tracking and tool-call recovery.

    Features:
    - Error statistics per exception type and method
    - Structured error logging with sensitive fields removed
    - Tool calls that fail outside the dispatcher (including calls to an
      unregistered tool) become ``Failed: ...`` replies
    """

    def __init__(self,
                 include_traceback: bool = True,
                 track_error_stats: bool = True):
        """Initialize error handling middleware.

        Args:
            include_traceback: Whether to include full stack traces in logs
            track_error_stats: Whether to track error statistics
        """
        self.logger = get_middleware_logger()
        self.include_traceback = include_traceback
        self.track_error_stats = track_error_stats

        self.error_stats: dict[str, int] = defaultdict(int)
        self.method_errors: dict[str, int] = defaultdict(int)

    async def on_message(self, context: MiddlewareContext, call_next):
        """Track errors on every MCP message and re-raise them."""
        try:
            return await call_next(context)

        except Exception as e:
            await self._handle_error(e, context)
            raise  # Always re-raise to preserve FastMCP error handling

    async def on_call_tool(self, context: MiddlewareContext, call_next) -> ToolResult:
        """Turn tool-call failures into ``Failed:`` replies."""
        try:
            return await call_next(context)

        except NotFoundError as e:
            error = UnknownToolError(context.message.name)
            await self._handle_error(error, context)
            self.logger.debug("Unregistered tool requested", detail=str(e))
            return failure_result(error)

        except Exception as e:
            await self._handle_error(e, context)
            return failure_result(e)

    async def _handle_error(self, error: Exception, context: MiddlewareContext) -> None:
        """Handle and log error with its request context.

        Args:
            error: The exception that occurred
            context: The MCP middleware context
        """
        error_type = type(error).__name__
        method = context.method or "unknown"

        if self.track_error_stats:
            error_key = f"{error_type}:{method}"
            self.error_stats[error_key] += 1
            self.method_errors[method] += 1

        error_data: dict[str, Any] = {
            "error_type": error_type,
            "error_message": str(error),
            "method": method,
            "source": context.source,
            "message_type": context.type,
            "timestamp": context.timestamp,
        }

        if self.track_error_stats:
            error_data.update({
                "error_occurrence_count": self.error_stats[f"{error_type}:{method}"],
                "method_error_count": self.method_errors[method],
                "total_error_types": len(self.error_stats),
            })

        if hasattr(context.message, "__dict__"):
            message_info = {}
            for key, value in context.message.__dict__.items():
                if not key.startswith("_") and not is_sensitive_field(key):
                    message_info[key] = str(value)[:100]  # Limit length
            error_data["message_context"] = message_info

        if self._is_critical_error(error):
            self.logger.critical(
                "Critical error in MCP request",
                **error_data,
                exc_info=self.include_traceback,
            )
        elif self._is_warning_level_error(error):
            self.logger.warning(
                "Warning-level error in MCP request",
                **error_data,
                exc_info=False,
            )
        else:
            self.logger.error(
                "Error in MCP request",
                **error_data,
                exc_info=self.include_traceback,
            )

    def _is_critical_error(self, error: Exception) -> bool:
        critical_types = (
            SystemError,
            MemoryError,
            RecursionError,
        )
        return isinstance(error, critical_types)

    def _is_warning_level_error(self, error: Exception) -> bool:
        """Upstream failures and unknown tools are the caller's problem, not ours."""
        warning_types = (
            PortainerAPIError,
            UnknownToolError,
            TimeoutError,
            ConnectionError,
        )
        return isinstance(error, warning_types)

    def get_error_statistics(self) -> dict[str, Any]:
        """Get error statistics.

        Returns:
            Dictionary with error counts and the most frequent errors
        """
        if not self.track_error_stats:
            return {"error_tracking": "disabled"}

        total_errors = sum(self.error_stats.values())

        top_errors = sorted(
            self.error_stats.items(),
            key=lambda x: x[1],
            reverse=True
        )[:10]

        top_error_methods = sorted(
            self.method_errors.items(),
            key=lambda x: x[1],
            reverse=True
        )[:10]

        return {
            "total_errors": total_errors,
            "unique_error_types": len(self.error_stats),
            "top_errors": top_errors,
            "top_error_methods": top_error_methods,
            "error_distribution": dict(self.error_stats),
        }

    def reset_statistics(self) -> None:
        """Reset all error statistics."""
        self.error_stats.clear()
        self.method_errors.clear()
        self.logger.info("Error statistics reset")
