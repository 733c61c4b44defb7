"""Parameter models for tool argument validation.

Each tool decodes its raw argument mapping into one of these models before
anything is sent upstream. The JSON schema of the model is the tool's
advertised input schema.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

# Docker object names and ids; ids are placed into the request path
ResourceId = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, pattern=r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"),
]


class MCPModel(BaseModel):
    """Base model with common MCP settings."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none by default."""
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)


class EnvironmentParams(MCPModel):
    """Parameters shared by every tool."""

    environment_id: int = Field(
        ..., ge=1, description="ID of the Portainer environment (endpoint) to operate on"
    )


class CreateContainerParams(EnvironmentParams):
    name: ResourceId = Field(..., description="The name of the container to create")
    image: NonBlank = Field(..., description="The Docker image to use for the container")
    exposed_ports: dict[str, Any] = Field(
        default_factory=dict,
        description='Ports to expose from the container, e.g. {"80/tcp": {}}',
    )
    host_config: dict[str, Any] = Field(
        default_factory=dict,
        description="Host configuration for the container (port bindings, restart policy, ...)",
    )


class ContainerParams(EnvironmentParams):
    container_id: ResourceId = Field(..., description="The ID or name of the container")


class DeleteContainerParams(ContainerParams):
    force: bool = Field(default=False, description="Kill the container first if it is running")


class LogParams(MCPModel):
    """Log filters shared by container and service logs."""

    stdout: bool = Field(default=True, description="Include standard output")
    stderr: bool = Field(default=True, description="Include standard error")
    follow: bool = Field(default=False, description="Keep the log stream open")
    timestamps: bool = Field(default=False, description="Prefix every line with its timestamp")
    tail: int = Field(
        default=10, ge=0, description="Number of lines to return from the end of the logs"
    )
    since: int | None = Field(
        default=None, ge=0, description="Only return logs since this UNIX timestamp"
    )

    def to_query(self) -> dict[str, Any]:
        return self.model_dump(include=set(LogParams.model_fields))


class ContainerLogsParams(ContainerParams, LogParams):
    pass


class UpdateContainerLimitsParams(ContainerParams):
    memory: int | None = Field(default=None, ge=0, description="Memory limit in bytes")
    memory_swap: int | None = Field(
        default=None,
        ge=-1,
        description="Total memory limit (memory + swap) in bytes; -1 for unlimited swap",
    )
    restart_policy: dict[str, Any] | None = Field(
        default=None,
        description='Restart policy, e.g. {"Name": "on-failure", "MaximumRetryCount": 3}',
    )


class NetworkParams(EnvironmentParams):
    network_id: ResourceId = Field(..., description="The ID or name of the network")


class ServiceParams(EnvironmentParams):
    service_id: ResourceId = Field(..., description="The ID or name of the service")


class ServiceLogsParams(ServiceParams, LogParams):
    pass
