"""Data models for Portainer MCP."""

from .enums import ToolName  # noqa: F401
from .params import (  # noqa: F401
    ContainerLogsParams,
    ContainerParams,
    CreateContainerParams,
    DeleteContainerParams,
    EnvironmentParams,
    NetworkParams,
    ServiceLogsParams,
    ServiceParams,
    UpdateContainerLimitsParams,
)

__all__ = [
    "ToolName",
    "EnvironmentParams",
    "CreateContainerParams",
    "ContainerParams",
    "DeleteContainerParams",
    "ContainerLogsParams",
    "UpdateContainerLimitsParams",
    "NetworkParams",
    "ServiceParams",
    "ServiceLogsParams",
]
