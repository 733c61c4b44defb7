"""Portainer / Docker API response models.

These are read-through projections of upstream objects. Unknown fields are
kept, optional ones may be missing, and Docker's ``null`` lists become ``[]``.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _none_as_empty(value: Any) -> Any:
    return [] if value is None else value


def _none_as_empty_dict(value: Any) -> Any:
    return {} if value is None else value


class PortainerModel(BaseModel):
    """Base model for upstream payloads (PascalCase aliases, extra fields kept)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class PortBinding(PortainerModel):
    ip: str | None = Field(default=None, alias="IP")
    private_port: int = Field(alias="PrivatePort")
    public_port: int | None = Field(default=None, alias="PublicPort")
    type: str = Field(default="tcp", alias="Type")

    def __str__(self) -> str:
        if self.public_port:
            host = f"{self.ip}:" if self.ip else ""
            return f"{host}{self.public_port}→{self.private_port}/{self.type}"
        return f"{self.private_port}/{self.type}"


class Container(PortainerModel):
    """A container as listed by ``/containers/json``."""

    id: str = Field(alias="Id")
    names: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Names"
    )
    image: str = Field(default="", alias="Image")
    ports: Annotated[list[PortBinding], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Ports"
    )
    state: str = Field(default="unknown", alias="State")
    status: str = Field(default="", alias="Status")

    @property
    def name(self) -> str:
        if not self.names:
            return self.id[:12]
        return self.names[0].lstrip("/")


class Image(PortainerModel):
    id: str = Field(alias="Id")
    repo_tags: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="RepoTags"
    )
    size: int = Field(default=0, alias="Size")
    created: int | None = Field(default=None, alias="Created")


class IPAMConfig(PortainerModel):
    subnet: str | None = Field(default=None, alias="Subnet")
    gateway: str | None = Field(default=None, alias="Gateway")


class IPAM(PortainerModel):
    driver: str | None = Field(default=None, alias="Driver")
    config: Annotated[list[IPAMConfig], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Config"
    )


class NetworkContainer(PortainerModel):
    name: str = Field(default="", alias="Name")
    ipv4_address: str | None = Field(default=None, alias="IPv4Address")


class Network(PortainerModel):
    id: str = Field(alias="Id")
    name: str = Field(default="", alias="Name")
    driver: str = Field(default="", alias="Driver")
    scope: str = Field(default="", alias="Scope")
    internal: bool = Field(default=False, alias="Internal")
    ipam: IPAM = Field(default_factory=IPAM, alias="IPAM")
    containers: Annotated[dict[str, NetworkContainer], BeforeValidator(_none_as_empty_dict)] = (
        Field(default_factory=dict, alias="Containers")
    )


class ContainerSpec(PortainerModel):
    image: str = Field(default="", alias="Image")


class TaskTemplate(PortainerModel):
    container_spec: ContainerSpec = Field(default_factory=ContainerSpec, alias="ContainerSpec")


class ReplicatedMode(PortainerModel):
    replicas: int | None = Field(default=None, alias="Replicas")


class ServiceMode(PortainerModel):
    replicated: ReplicatedMode | None = Field(default=None, alias="Replicated")
    global_mode: dict[str, Any] | None = Field(default=None, alias="Global")


class ServiceSpec(PortainerModel):
    name: str = Field(default="", alias="Name")
    task_template: TaskTemplate = Field(default_factory=TaskTemplate, alias="TaskTemplate")
    mode: ServiceMode = Field(default_factory=ServiceMode, alias="Mode")


class EndpointPort(PortainerModel):
    protocol: str = Field(default="tcp", alias="Protocol")
    target_port: int | None = Field(default=None, alias="TargetPort")
    published_port: int | None = Field(default=None, alias="PublishedPort")
    publish_mode: str | None = Field(default=None, alias="PublishMode")

    def __str__(self) -> str:
        if self.published_port:
            return f"{self.published_port}→{self.target_port}/{self.protocol}"
        return f"{self.target_port}/{self.protocol}"


class EndpointSpec(PortainerModel):
    mode: str | None = Field(default=None, alias="Mode")
    ports: Annotated[list[EndpointPort], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Ports"
    )


class ServiceEndpoint(PortainerModel):
    spec: EndpointSpec = Field(default_factory=EndpointSpec, alias="Spec")
    ports: Annotated[list[EndpointPort], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Ports"
    )


class UpdateStatus(PortainerModel):
    state: str | None = Field(default=None, alias="State")
    started_at: str | None = Field(default=None, alias="StartedAt")
    completed_at: str | None = Field(default=None, alias="CompletedAt")
    message: str | None = Field(default=None, alias="Message")


class Service(PortainerModel):
    """A swarm service as listed by ``/services``."""

    id: str = Field(alias="ID")
    spec: ServiceSpec = Field(default_factory=ServiceSpec, alias="Spec")
    endpoint: ServiceEndpoint = Field(default_factory=ServiceEndpoint, alias="Endpoint")
    update_status: UpdateStatus | None = Field(default=None, alias="UpdateStatus")
    created_at: str | None = Field(default=None, alias="CreatedAt")
    updated_at: str | None = Field(default=None, alias="UpdatedAt")

    @property
    def replicas(self) -> int | None:
        if self.spec.mode.replicated is None:
            return None
        return self.spec.mode.replicated.replicas

    @property
    def published_ports(self) -> list[EndpointPort]:
        # Published ports are reported on the endpoint; Spec.EndpointSpec holds the requested ones
        return self.endpoint.ports or self.endpoint.spec.ports


class ContainerCreateResponse(PortainerModel):
    id: str = Field(alias="Id")
    warnings: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Warnings"
    )


class ContainerUpdateResponse(PortainerModel):
    warnings: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="Warnings"
    )


class ContainerPruneReport(PortainerModel):
    containers_deleted: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="ContainersDeleted"
    )
    space_reclaimed: int = Field(default=0, alias="SpaceReclaimed")


class ImageDeleteItem(PortainerModel):
    untagged: str | None = Field(default=None, alias="Untagged")
    deleted: str | None = Field(default=None, alias="Deleted")


class ImagePruneReport(PortainerModel):
    images_deleted: Annotated[list[ImageDeleteItem], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="ImagesDeleted"
    )
    space_reclaimed: int = Field(default=0, alias="SpaceReclaimed")


class BuildCachePruneReport(PortainerModel):
    caches_deleted: Annotated[list[str], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list, alias="CachesDeleted"
    )
    space_reclaimed: int = Field(default=0, alias="SpaceReclaimed")
