"""Enum definitions for Portainer MCP tools."""

from enum import Enum


class ToolName(Enum):
    """Names of the registered tools, in catalog order."""

    FETCH_CONTAINERS = "fetch_containers"
    CREATE_CONTAINER = "create_container"
    START_CONTAINER = "start_container"
    DELETE_CONTAINER = "delete_container"
    FETCH_CONTAINER_LOGS = "fetch_container_logs"
    UPDATE_CONTAINER_LIMITS = "update_container_limits"
    DELETE_STOPPED_CONTAINERS = "delete_stopped_containers"
    FETCH_IMAGES = "fetch_images"
    DELETE_IMAGE_BUILD_CACHE = "delete_image_build_cache"
    DELETE_UNUSED_IMAGES = "delete_unused_images"
    FETCH_NETWORKS = "fetch_networks"
    INSPECT_NETWORK = "inspect_network"
    FETCH_SERVICES = "fetch_services"
    FETCH_SERVICE_LOGS = "fetch_service_logs"
    INSPECT_SERVICE = "inspect_service"
