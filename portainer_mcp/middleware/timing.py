"""Timing middleware for Portainer MCP server performance monitoring."""

import time
from collections import defaultdict, deque
from collections.abc import Iterable
from typing import Any

from fastmcp.server.middleware import Middleware, MiddlewareContext

from ..core.logging_config import get_middleware_logger
from ..models.enums import ToolName


class TimingMiddleware(Middleware):
    """FastMCP middleware for request timing.

    Tool calls are tracked per tool (``tools/call:<name>``) since one slow
    Portainer endpoint should not hide behind the others.
    """

    def __init__(self,
                 slow_request_threshold_ms: float = 5000.0,
                 track_statistics: bool = True,
                 max_history_size: int = 1000,
                 tool_names: Iterable[str] | None = None):
        """Initialize timing middleware.

        Args:
            slow_request_threshold_ms: Threshold for logging slow requests (milliseconds)
            track_statistics: Whether to track timing statistics
            max_history_size: Maximum number of timing records kept per method
            tool_names: Tools tracked under their own key; others share ``tools/call``
        """
        self.logger = get_middleware_logger()
        self.slow_threshold_ms = slow_request_threshold_ms
        self.track_statistics = track_statistics
        self.max_history_size = max_history_size
        self.tool_names = frozenset(
            tool_names if tool_names is not None else (tool.value for tool in ToolName)
        )

        self.request_times: dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history_size))
        self.method_stats: dict[str, dict[str, Any]] = defaultdict(dict)
        self.total_requests = 0
        self.slow_requests = 0

    async def on_message(self, context: MiddlewareContext, call_next):
        """Time all MCP requests."""
        start_time = time.perf_counter()
        method = self._timing_key(context)
        success = False

        try:
            result = await call_next(context)
            success = self._succeeded(result)
            return result

        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000

            if self.track_statistics:
                self._update_statistics(method, duration_ms, success)

            self._log_timing(method, duration_ms, success)

    def _timing_key(self, context: MiddlewareContext) -> str:
        method = context.method or "unknown"
        tool_name = getattr(context.message, "name", None)
        if method == "tools/call" and tool_name in self.tool_names:
            return f"{method}:{tool_name}"
        return method

    @staticmethod
    def _succeeded(result: Any) -> bool:
        # Tool failures are delivered as ordinary replies flagged in structured content
        structured = getattr(result, "structured_content", None)
        if isinstance(structured, dict) and "success" in structured:
            return bool(structured["success"])
        return not getattr(result, "is_error", False)

    def _update_statistics(self, method: str, duration_ms: float, success: bool) -> None:
        self.total_requests += 1

        if duration_ms > self.slow_threshold_ms:
            self.slow_requests += 1

        self.request_times[method].append({
            "duration_ms": duration_ms,
            "success": success,
            "timestamp": time.time(),
        })

        records = self.request_times[method]
        method_times = [req["duration_ms"] for req in records]
        self.method_stats[method] = {
            "count": len(method_times),
            "avg_ms": sum(method_times) / len(method_times),
            "min_ms": min(method_times),
            "max_ms": max(method_times),
            "success_rate": sum(1 for req in records if req["success"]) / len(method_times),
            "slow_count": sum(1 for t in method_times if t > self.slow_threshold_ms),
        }

    def _log_timing(self, method: str, duration_ms: float, success: bool) -> None:
        log_data: dict[str, Any] = {
            "method": method,
            "duration_ms": round(duration_ms, 2),
            "success": success,
        }

        if self.track_statistics and method in self.method_stats:
            stats = self.method_stats[method]
            log_data.update({
                "avg_duration_ms": round(stats["avg_ms"], 2),
                "method_request_count": stats["count"],
            })

        if duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request detected",
                **log_data,
                slow_threshold_ms=self.slow_threshold_ms,
            )
        else:
            self.logger.debug("Request completed", **log_data)

    def get_performance_statistics(self) -> dict[str, Any]:
        """Get timing statistics.

        Returns:
            Dictionary with totals, per-method statistics and the slowest methods
        """
        if not self.track_statistics:
            return {"performance_tracking": "disabled"}

        slowest_methods = sorted(
            [(method, stats["avg_ms"]) for method, stats in self.method_stats.items()],
            key=lambda x: x[1],
            reverse=True
        )[:10]

        return {
            "total_requests": self.total_requests,
            "slow_requests": self.slow_requests,
            "slow_request_rate": self.slow_requests / max(self.total_requests, 1),
            "slow_threshold_ms": self.slow_threshold_ms,
            "method_stats": dict(self.method_stats),
            "slowest_methods": slowest_methods,
        }

    def reset_statistics(self) -> None:
        """Reset all timing statistics."""
        self.request_times.clear()
        self.method_stats.clear()
        self.total_requests = 0
        self.slow_requests = 0
        self.logger.info("Timing statistics reset")
