"""Core exceptions for Portainer MCP operations."""

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Failure kinds surfaced by the Portainer client and the dispatcher."""

    UPSTREAM_REJECTED = "upstream_rejected"
    UNREACHABLE = "unreachable"
    REQUEST_SETUP = "request_setup"
    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_TOOL = "unknown_tool"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class PortainerMCPError(Exception):
    """Base exception for Portainer MCP operations."""

    kind: ErrorKind = ErrorKind.INTERNAL


class ConfigurationError(PortainerMCPError):
    """Configuration validation or loading failed."""

    kind = ErrorKind.CONFIGURATION


class PortainerAPIError(PortainerMCPError):
    """A call to the Portainer API failed."""


class UpstreamRejectedError(PortainerAPIError):
    """Portainer answered with a non-2xx status."""

    kind = ErrorKind.UPSTREAM_REJECTED

    def __init__(self, status: int, body: str, upstream_message: str | None = None):
        self.status = status
        self.body = body
        self.upstream_message = upstream_message
        super().__init__(f"Portainer API error: {status} - {body}")


class UpstreamUnreachableError(PortainerAPIError):
    """The request was sent but no response arrived."""

    kind = ErrorKind.UNREACHABLE

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"No response received from Portainer API: {reason}")


class RequestSetupError(PortainerAPIError):
    """The request could not be built or sent."""

    kind = ErrorKind.REQUEST_SETUP

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Error setting up Portainer request: {reason}")


class UnknownToolError(PortainerMCPError):
    """No tool is registered under the requested name."""

    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class MissingArgumentsError(PortainerMCPError):
    """A tool was called without any arguments."""

    kind = ErrorKind.INVALID_ARGUMENTS

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No arguments provided for tool: {name}")


class ToolArgumentError(PortainerMCPError):
    """Tool arguments failed validation.

    ``problems`` holds ``(field, problem)`` pairs, one per offending field.
    """

    kind = ErrorKind.INVALID_ARGUMENTS

    def __init__(self, name: str, problems: list[tuple[str, str]]):
        self.name = name
        self.problems = problems
        details = "; ".join(f"{field}: {problem}" for field, problem in problems)
        super().__init__(f"Invalid arguments for {name}: {details}")

    def to_dict(self) -> list[dict[str, Any]]:
        return [{"field": field, "problem": problem} for field, problem in self.problems]
