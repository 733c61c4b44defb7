"""Text formatting for tool replies.

Lists render one line per item in upstream order; single objects and
acknowledgements render as a short block.
"""

from datetime import datetime, timezone

from ..models.portainer import (
    BuildCachePruneReport,
    Container,
    ContainerCreateResponse,
    ContainerPruneReport,
    ContainerUpdateResponse,
    Image,
    ImagePruneReport,
    Network,
    Service,
)
from ..utils import format_size, short_id

STATUS_INDICATORS = {
    "running": "●",
    "exited": "○",
    "stopped": "○",
    "paused": "⏸",
    "restarting": "◐",
    "created": "◯",
    "dead": "✗",
    "removing": "⊗",
}


def _ports_display(ports: list) -> str:
    return ", ".join(str(port) for port in ports) if ports else "-"


def _timestamp(seconds: int | None) -> str:
    if seconds is None:
        return "-"
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_container_line(container: Container) -> str:
    indicator = STATUS_INDICATORS.get(container.state.lower(), "?")
    return (
        f"{indicator} {container.name} | id: {container.id} | state: {container.state} | "
        f"image: {container.image or '-'} | ports: {_ports_display(container.ports)}"
    )


def format_containers(containers: list[Container], environment_id: int) -> str:
    if not containers:
        return f"No containers found in environment {environment_id}"
    lines = [f"Containers in environment {environment_id} ({len(containers)}):"]
    lines.extend(format_container_line(container) for container in containers)
    return "\n".join(lines)


def format_container_created(response: ContainerCreateResponse, name: str, image: str) -> str:
    lines = [
        f"Container created: {name}",
        f"  → ID: {response.id}",
        f"  → Image: {image}",
    ]
    lines.extend(f"  ⚠️  Warning: {warning}" for warning in response.warnings)
    return "\n".join(lines)


def format_container_started(container_id: str) -> str:
    return f"▶️ Container started: {container_id}"


def format_container_deleted(container_id: str, force: bool) -> str:
    suffix = " (forced)" if force else ""
    return f"Container deleted: {container_id}{suffix}"


def format_logs(logs: str, kind: str, resource_id: str, tail: int) -> str:
    """Render log text under a short header."""
    lines = logs.splitlines()
    if not lines:
        return f"📝 No logs found for {kind} {resource_id}"
    header = [
        f"📝 {kind.title()} Logs: {resource_id}",
        f"  → Lines: {len(lines)} (tail {tail})",
        "─" * 60,
    ]
    return "\n".join(header + lines)


def format_container_updated(
    response: ContainerUpdateResponse,
    container_id: str,
    memory: int | None,
    memory_swap: int | None,
    restart_policy: dict | None,
) -> str:
    lines = [f"Container updated: {container_id}"]
    if memory is not None:
        lines.append(f"  → Memory: {format_size(memory)}")
    if memory_swap is not None:
        swap = "unlimited" if memory_swap == -1 else format_size(memory_swap)
        lines.append(f"  → Memory + swap: {swap}")
    if restart_policy is not None:
        lines.append(f"  → Restart policy: {restart_policy.get('Name', restart_policy)}")
    lines.extend(f"  ⚠️  Warning: {warning}" for warning in response.warnings)
    return "\n".join(lines)


def format_container_prune(report: ContainerPruneReport) -> str:
    lines = [
        f"Deleted {len(report.containers_deleted)} stopped containers, "
        f"reclaimed {format_size(report.space_reclaimed)}"
    ]
    lines.extend(f"  - {container_id}" for container_id in report.containers_deleted)
    return "\n".join(lines)


def format_image_line(image: Image) -> str:
    tags = ", ".join(image.repo_tags) if image.repo_tags else "<none>"
    return (
        f"{tags} | id: {short_id(image.id)} | size: {format_size(image.size)} | "
        f"created: {_timestamp(image.created)}"
    )


def format_images(images: list[Image], environment_id: int) -> str:
    if not images:
        return f"No images found in environment {environment_id}"
    lines = [f"Images in environment {environment_id} ({len(images)}):"]
    lines.extend(format_image_line(image) for image in images)
    return "\n".join(lines)


def format_build_cache_prune(report: BuildCachePruneReport) -> str:
    return (
        f"Deleted {len(report.caches_deleted)} build cache entries, "
        f"reclaimed {format_size(report.space_reclaimed)}"
    )


def format_image_prune(report: ImagePruneReport) -> str:
    lines = [
        f"Deleted {len(report.images_deleted)} unused images, "
        f"reclaimed {format_size(report.space_reclaimed)}"
    ]
    for item in report.images_deleted:
        if item.untagged:
            lines.append(f"  - untagged: {item.untagged}")
        if item.deleted:
            lines.append(f"  - deleted: {item.deleted}")
    return "\n".join(lines)


def format_network_line(network: Network) -> str:
    subnets = ", ".join(cfg.subnet for cfg in network.ipam.config if cfg.subnet) or "-"
    return (
        f"{network.name} | id: {short_id(network.id)} | driver: {network.driver or '-'} | "
        f"scope: {network.scope or '-'} | subnets: {subnets}"
    )


def format_networks(networks: list[Network], environment_id: int) -> str:
    if not networks:
        return f"No networks found in environment {environment_id}"
    lines = [f"Networks in environment {environment_id} ({len(networks)}):"]
    lines.extend(format_network_line(network) for network in networks)
    return "\n".join(lines)


def format_network_details(network: Network) -> str:
    lines = [
        f"Network: {network.name}",
        f"  → ID: {network.id}",
        f"  → Driver: {network.driver or '-'}",
        f"  → Scope: {network.scope or '-'}",
        f"  → Internal: {'yes' if network.internal else 'no'}",
    ]
    for cfg in network.ipam.config:
        lines.append(f"  → Subnet: {cfg.subnet or '-'} (gateway {cfg.gateway or '-'})")
    if network.containers:
        lines.append(f"  → Containers ({len(network.containers)}):")
        for container_id, attached in network.containers.items():
            address = attached.ipv4_address or "-"
            lines.append(f"      {attached.name or short_id(container_id)} {address}")
    else:
        lines.append("  → Containers: none")
    return "\n".join(lines)


def _replicas_display(service: Service) -> str:
    if service.spec.mode.global_mode is not None:
        return "global"
    replicas = service.replicas
    return "-" if replicas is None else str(replicas)


def format_service_line(service: Service) -> str:
    return (
        f"{service.spec.name or '-'} | id: {service.id} | "
        f"image: {service.spec.task_template.container_spec.image or '-'} | "
        f"replicas: {_replicas_display(service)} | ports: {_ports_display(service.published_ports)}"
    )


def format_services(services: list[Service], environment_id: int) -> str:
    if not services:
        return f"No services found in environment {environment_id}"
    lines = [f"Services in environment {environment_id} ({len(services)}):"]
    lines.extend(format_service_line(service) for service in services)
    return "\n".join(lines)


def format_service_details(service: Service) -> str:
    lines = [
        f"Service: {service.spec.name or '-'}",
        f"  → ID: {service.id}",
        f"  → Image: {service.spec.task_template.container_spec.image or '-'}",
        f"  → Replicas: {_replicas_display(service)}",
        f"  → Ports: {_ports_display(service.published_ports)}",
        f"  → Created: {service.created_at or '-'}",
        f"  → Updated: {service.updated_at or '-'}",
    ]
    if service.update_status is not None and service.update_status.state:
        status = service.update_status
        message = f" ({status.message})" if status.message else ""
        lines.append(f"  → Update status: {status.state}{message}")
    return "\n".join(lines)
