"""Tool catalog and dispatch.

Each catalog entry pairs a tool name with its params model and a handler that
makes exactly one Portainer call and formats the result. ``ToolDispatcher``
is the recovery boundary: every call ends in a reply, never an exception.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastmcp.tools import Tool, ToolResult
from pydantic import Field, ValidationError

from ..core.exceptions import (
    ErrorKind,
    MissingArgumentsError,
    PortainerMCPError,
    ToolArgumentError,
    UnknownToolError,
)
from ..core.portainer_client import PortainerClient
from ..models.enums import ToolName
from ..models.params import (
    ContainerLogsParams,
    ContainerParams,
    CreateContainerParams,
    DeleteContainerParams,
    EnvironmentParams,
    MCPModel,
    NetworkParams,
    ServiceLogsParams,
    ServiceParams,
    UpdateContainerLimitsParams,
)
from . import formatting

logger = structlog.get_logger("server")

FALLBACK_ERROR_MESSAGE = "Cannot process the request"

Handler = Callable[[PortainerClient, Any], Awaitable[str]]

READ_ONLY = {"readOnlyHint": True, "openWorldHint": True}
DESTRUCTIVE = {"readOnlyHint": False, "destructiveHint": True, "openWorldHint": True}
MUTATING = {"readOnlyHint": False, "destructiveHint": False, "openWorldHint": True}


@dataclass(frozen=True)
class ToolSpec:
    """A catalog entry: name, description, argument model and handler."""

    name: ToolName
    description: str
    params_model: type[MCPModel]
    handler: Handler
    annotations: dict[str, bool] = field(default_factory=dict)

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema()


# Handlers


async def _fetch_containers(client: PortainerClient, params: EnvironmentParams) -> str:
    containers = await client.list_containers(params.environment_id)
    return formatting.format_containers(containers, params.environment_id)


async def _create_container(client: PortainerClient, params: CreateContainerParams) -> str:
    response = await client.create_container(
        params.environment_id,
        params.name,
        params.image,
        exposed_ports=params.exposed_ports,
        host_config=params.host_config,
    )
    return formatting.format_container_created(response, params.name, params.image)


async def _start_container(client: PortainerClient, params: ContainerParams) -> str:
    await client.start_container(params.environment_id, params.container_id)
    return formatting.format_container_started(params.container_id)


async def _delete_container(client: PortainerClient, params: DeleteContainerParams) -> str:
    await client.delete_container(params.environment_id, params.container_id, force=params.force)
    return formatting.format_container_deleted(params.container_id, params.force)


async def _fetch_container_logs(client: PortainerClient, params: ContainerLogsParams) -> str:
    logs = await client.container_logs(
        params.environment_id, params.container_id, **params.to_query()
    )
    return formatting.format_logs(logs, "container", params.container_id, params.tail)


async def _update_container_limits(
    client: PortainerClient, params: UpdateContainerLimitsParams
) -> str:
    response = await client.update_container(
        params.environment_id,
        params.container_id,
        memory=params.memory,
        memory_swap=params.memory_swap,
        restart_policy=params.restart_policy,
    )
    return formatting.format_container_updated(
        response, params.container_id, params.memory, params.memory_swap, params.restart_policy
    )


async def _delete_stopped_containers(client: PortainerClient, params: EnvironmentParams) -> str:
    report = await client.prune_containers(params.environment_id)
    return formatting.format_container_prune(report)


async def _fetch_images(client: PortainerClient, params: EnvironmentParams) -> str:
    images = await client.list_images(params.environment_id)
    return formatting.format_images(images, params.environment_id)


async def _delete_image_build_cache(client: PortainerClient, params: EnvironmentParams) -> str:
    report = await client.prune_build_cache(params.environment_id)
    return formatting.format_build_cache_prune(report)


async def _delete_unused_images(client: PortainerClient, params: EnvironmentParams) -> str:
    report = await client.prune_unused_images(params.environment_id)
    return formatting.format_image_prune(report)


async def _fetch_networks(client: PortainerClient, params: EnvironmentParams) -> str:
    networks = await client.list_networks(params.environment_id)
    return formatting.format_networks(networks, params.environment_id)


async def _inspect_network(client: PortainerClient, params: NetworkParams) -> str:
    network = await client.inspect_network(params.environment_id, params.network_id)
    return formatting.format_network_details(network)


async def _fetch_services(client: PortainerClient, params: EnvironmentParams) -> str:
    services = await client.list_services(params.environment_id)
    return formatting.format_services(services, params.environment_id)


async def _fetch_service_logs(client: PortainerClient, params: ServiceLogsParams) -> str:
    logs = await client.service_logs(params.environment_id, params.service_id, **params.to_query())
    return formatting.format_logs(logs, "service", params.service_id, params.tail)


async def _inspect_service(client: PortainerClient, params: ServiceParams) -> str:
    service = await client.inspect_service(params.environment_id, params.service_id)
    return formatting.format_service_details(service)


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        ToolName.FETCH_CONTAINERS,
        "Fetch all containers (running and stopped) in a Portainer environment",
        EnvironmentParams,
        _fetch_containers,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.CREATE_CONTAINER,
        "Create a new container from an image, with optional exposed ports and host config",
        CreateContainerParams,
        _create_container,
        MUTATING,
    ),
    ToolSpec(
        ToolName.START_CONTAINER,
        "Start an existing container",
        ContainerParams,
        _start_container,
        MUTATING,
    ),
    ToolSpec(
        ToolName.DELETE_CONTAINER,
        "Delete a container, optionally killing it first with force",
        DeleteContainerParams,
        _delete_container,
        DESTRUCTIVE,
    ),
    ToolSpec(
        ToolName.FETCH_CONTAINER_LOGS,
        "Fetch the most recent log lines of a container",
        ContainerLogsParams,
        _fetch_container_logs,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.UPDATE_CONTAINER_LIMITS,
        "Update the memory limits and restart policy of a container",
        UpdateContainerLimitsParams,
        _update_container_limits,
        MUTATING,
    ),
    ToolSpec(
        ToolName.DELETE_STOPPED_CONTAINERS,
        "Delete all stopped containers in an environment",
        EnvironmentParams,
        _delete_stopped_containers,
        DESTRUCTIVE,
    ),
    ToolSpec(
        ToolName.FETCH_IMAGES,
        "Fetch all images in an environment",
        EnvironmentParams,
        _fetch_images,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.DELETE_IMAGE_BUILD_CACHE,
        "Delete the image build cache of an environment",
        EnvironmentParams,
        _delete_image_build_cache,
        DESTRUCTIVE,
    ),
    ToolSpec(
        ToolName.DELETE_UNUSED_IMAGES,
        "Delete every image not used by a container",
        EnvironmentParams,
        _delete_unused_images,
        DESTRUCTIVE,
    ),
    ToolSpec(
        ToolName.FETCH_NETWORKS,
        "Fetch all networks in an environment",
        EnvironmentParams,
        _fetch_networks,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.INSPECT_NETWORK,
        "Show the details of a network and its attached containers",
        NetworkParams,
        _inspect_network,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.FETCH_SERVICES,
        "Fetch all swarm services in an environment",
        EnvironmentParams,
        _fetch_services,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.FETCH_SERVICE_LOGS,
        "Fetch the most recent log lines of a swarm service",
        ServiceLogsParams,
        _fetch_service_logs,
        READ_ONLY,
    ),
    ToolSpec(
        ToolName.INSPECT_SERVICE,
        "Show the details of a swarm service",
        ServiceParams,
        _inspect_service,
        READ_ONLY,
    ),
)


def _validation_problems(error: ValidationError) -> list[tuple[str, str]]:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "arguments"
        problems.append((location, item["msg"]))
    return problems


def failure_result(error: Exception) -> ToolResult:
    """Build the ``Failed: ...`` reply for an error."""
    message = str(error) or FALLBACK_ERROR_MESSAGE
    kind = error.kind if isinstance(error, PortainerMCPError) else ErrorKind.INTERNAL
    structured: dict[str, Any] = {
        "success": False,
        "error": message,
        "error_kind": kind.value,
    }
    if isinstance(error, ToolArgumentError):
        structured["problems"] = error.to_dict()
    return ToolResult(content=f"Failed: {message}", structured_content=structured)


class ToolDispatcher:
    """Validates tool arguments, calls Portainer and formats the reply."""

    def __init__(self, client: PortainerClient, specs: tuple[ToolSpec, ...] = TOOL_SPECS):
        self.client = client
        self._specs = {spec.name.value: spec for spec in specs}

    def list_tools(self) -> list[ToolSpec]:
        """Return the catalog in registration order."""
        return list(self._specs.values())

    def get_tool(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def decode_arguments(self, name: str, arguments: dict[str, Any] | None) -> MCPModel:
        """Decode raw arguments into the tool's params model.

        Raises:
            UnknownToolError: no tool is registered under ``name``
            MissingArgumentsError: ``arguments`` is missing or empty
            ToolArgumentError: ``arguments`` failed validation
        """
        spec = self._specs.get(name)
        if spec is None:
            raise UnknownToolError(name)
        if not arguments:
            raise MissingArgumentsError(name)
        try:
            return spec.params_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolArgumentError(name, _validation_problems(e)) from e

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Run one tool call and return its reply; failures become ``Failed:`` replies."""
        try:
            params = self.decode_arguments(name, arguments)
            text = await self._specs[name].handler(self.client, params)
        except Exception as e:
            kind = e.kind if isinstance(e, PortainerMCPError) else ErrorKind.INTERNAL
            logger.warning(
                "Tool call failed",
                tool=name,
                error=str(e),
                error_type=type(e).__name__,
                error_kind=kind.value,
                exc_info=kind is ErrorKind.INTERNAL,
            )
            return failure_result(e)

        logger.info("Tool call completed", tool=name)
        return ToolResult(
            content=text,
            structured_content={"success": True, "tool": name, "formatted_output": text},
        )


class DispatchedTool(Tool):
    """A FastMCP tool whose execution is delegated to a ``ToolDispatcher``."""

    dispatcher: Any = Field(default=None, exclude=True)

    @classmethod
    def from_spec(cls, spec: ToolSpec, dispatcher: ToolDispatcher) -> "DispatchedTool":
        return cls(
            name=spec.name.value,
            description=spec.description,
            parameters=spec.input_schema,
            annotations=spec.annotations or None,
            dispatcher=dispatcher,
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        return await self.dispatcher.call_tool(self.name, arguments)
