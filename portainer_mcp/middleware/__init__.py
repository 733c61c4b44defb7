"""FastMCP middleware for Portainer MCP server.

- LoggingMiddleware: Structured logging with dual output (console + files)
- ErrorHandlingMiddleware: Error tracking and tool-call recovery
- TimingMiddleware: Performance monitoring and timing statistics
"""

from .error_handling import ErrorHandlingMiddleware
from .logging import LoggingMiddleware
from .timing import TimingMiddleware

__all__ = [
    "LoggingMiddleware",
    "ErrorHandlingMiddleware",
    "TimingMiddleware",
]
