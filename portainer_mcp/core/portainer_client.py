"""Async client for the Docker API proxied by Portainer.

Every public method maps to exactly one HTTP call against
``/api/endpoints/{environment_id}/docker/...`` and either returns the parsed
payload or raises one of the three ``PortainerAPIError`` kinds.
"""

import asyncio
import json
from typing import Any

import aiohttp
import structlog

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
from .config_loader import PortainerSettings
from .exceptions import (
    PortainerAPIError,
    RequestSetupError,
    UpstreamRejectedError,
    UpstreamUnreachableError,
)

logger = structlog.get_logger("server")

# Docker multiplexes stdout/stderr of non-TTY containers into 8-byte framed chunks
_STREAM_TYPES = (0, 1, 2)
_FRAME_HEADER_SIZE = 8


def demultiplex_docker_stream(data: bytes) -> bytes:
    """Strip Docker stream frame headers, concatenating the payloads.

    Data that does not start with a valid frame header (TTY containers, plain
    text) is returned unchanged.
    """
    if not _is_frame_header(data, 0):
        return data

    output = bytearray()
    offset = 0
    while offset + _FRAME_HEADER_SIZE <= len(data):
        if not _is_frame_header(data, offset):
            return data
        size = int.from_bytes(data[offset + 4 : offset + _FRAME_HEADER_SIZE], "big")
        start = offset + _FRAME_HEADER_SIZE
        output += data[start : start + size]
        offset = start + size
    return bytes(output)


def _is_frame_header(data: bytes, offset: int) -> bool:
    header = data[offset : offset + _FRAME_HEADER_SIZE]
    return (
        len(header) == _FRAME_HEADER_SIZE
        and header[0] in _STREAM_TYPES
        and header[1:4] == b"\x00\x00\x00"
    )


def _to_query(params: dict[str, Any] | None) -> dict[str, str | int | float] | None:
    """Convert query values to what aiohttp accepts (booleans as true/false)."""
    if params is None:
        return None
    query: dict[str, str | int | float] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        elif isinstance(value, dict | list):
            query[key] = json.dumps(value)
        else:
            query[key] = value
    return query


def _extract_upstream_message(body: str) -> str | None:
    """Return the ``message`` field of a JSON error body, if there is one."""
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None


class PortainerClient:
    """Typed client for the Portainer Docker proxy.

    Can be used as an async context manager to share one connection pool across
    calls; otherwise each call opens and closes its own session.
    """

    def __init__(self, settings: PortainerSettings, session: aiohttp.ClientSession | None = None):
        self.settings = settings
        self._session = session
        self._owns_session = False
        self._timeout = aiohttp.ClientTimeout(total=settings.timeout)

    async def __aenter__(self) -> "PortainerClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the shared HTTP session if there is none yet."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

    async def close(self) -> None:
        """Close the shared HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        self._owns_session = False

    @property
    def headers(self) -> dict[str, str]:
        return {
            "X-API-Key": self.settings.api_key.get_secret_value(),
            "Accept": "application/json",
        }

    def docker_url(self, environment_id: int, path: str) -> str:
        """Build the full URL of a Docker API path inside an environment."""
        return f"{self.settings.base_url}/api/endpoints/{environment_id}/docker{path}"

    async def _request(
        self,
        method: str,
        environment_id: int,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        raw: bool = False,
    ) -> Any:
        """Perform one call and return the parsed JSON (or raw bytes).

        Raises:
            UpstreamRejectedError: Portainer answered with a non-2xx status
            UpstreamUnreachableError: no response (connection failure, timeout)
            RequestSetupError: the request could not be built or sent
        """
        url = self.docker_url(environment_id, path)
        logger.debug("Portainer request", method=method, url=url, params=params)

        try:
            if self._session is not None and not self._session.closed:
                status, payload = await self._send(self._session, method, url, params, body)
            else:
                async with aiohttp.ClientSession(timeout=self._timeout) as session:
                    status, payload = await self._send(session, method, url, params, body)
        except PortainerAPIError as e:
            self._log_failure(method, url, e)
            raise
        except (aiohttp.InvalidURL, aiohttp.NonHttpUrlClientError) as e:
            raise self._log_failure(method, url, RequestSetupError(f"invalid URL: {e}")) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise self._log_failure(
                method, url, UpstreamUnreachableError(self._describe_transport_error(e))
            ) from e
        except (TypeError, ValueError, RuntimeError) as e:
            raise self._log_failure(method, url, RequestSetupError(str(e))) from e

        logger.debug("Portainer response", method=method, url=url, status=status)
        if raw:
            return payload
        if not payload.strip():
            return None
        try:
            return json.loads(payload)
        except ValueError as e:
            raise self._log_failure(
                method,
                url,
                UpstreamRejectedError(status, payload.decode("utf-8", "replace"), "invalid JSON"),
            ) from e

    async def _send(
        self,
        session: aiohttp.ClientSession,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        body: dict[str, Any] | None,
    ) -> tuple[int, bytes]:
        async with session.request(
            method,
            url,
            params=_to_query(params),
            json=body,
            headers=self.headers,
            timeout=self._timeout,
        ) as response:
            payload = await response.read()
            if not 200 <= response.status < 300:
                text = payload.decode("utf-8", "replace")
                raise UpstreamRejectedError(
                    response.status, text, _extract_upstream_message(text)
                )
            return response.status, payload

    def _describe_transport_error(self, error: Exception) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"request timed out after {self.settings.timeout:g}s"
        return str(error) or type(error).__name__

    def _log_failure(self, method: str, url: str, error: PortainerAPIError) -> PortainerAPIError:
        logger.warning(
            "Portainer request failed",
            method=method,
            url=url,
            error=str(error),
            error_kind=error.kind.value,
        )
        return error

    # Containers

    async def list_containers(self, environment_id: int) -> list[Container]:
        data = await self._request(
            "GET", environment_id, "/containers/json", params={"all": True}
        )
        return [Container.model_validate(item) for item in data or []]

    async def create_container(
        self,
        environment_id: int,
        name: str,
        image: str,
        exposed_ports: dict[str, Any] | None = None,
        host_config: dict[str, Any] | None = None,
    ) -> ContainerCreateResponse:
        data = await self._request(
            "POST",
            environment_id,
            "/containers/create",
            params={"name": name},
            body={
                "Image": image,
                "ExposedPorts": exposed_ports or {},
                "HostConfig": host_config or {},
            },
        )
        return ContainerCreateResponse.model_validate(data)

    async def start_container(self, environment_id: int, container_id: str) -> None:
        await self._request("POST", environment_id, f"/containers/{container_id}/start")

    async def delete_container(
        self, environment_id: int, container_id: str, force: bool = False
    ) -> None:
        await self._request(
            "DELETE", environment_id, f"/containers/{container_id}", params={"force": force}
        )

    async def container_logs(
        self,
        environment_id: int,
        container_id: str,
        stdout: bool = True,
        stderr: bool = True,
        follow: bool = False,
        timestamps: bool = False,
        tail: int = 10,
        since: int | None = None,
    ) -> str:
        """Fetch the tail of a container's logs as text."""
        data = await self._request(
            "GET",
            environment_id,
            f"/containers/{container_id}/logs",
            params={
                "stdout": stdout,
                "stderr": stderr,
                "follow": follow,
                "timestamps": timestamps,
                "tail": tail,
                "since": since,
            },
            raw=True,
        )
        return demultiplex_docker_stream(data).decode("utf-8", "replace")

    async def update_container(
        self,
        environment_id: int,
        container_id: str,
        memory: int | None = None,
        memory_swap: int | None = None,
        restart_policy: dict[str, Any] | None = None,
    ) -> ContainerUpdateResponse:
        """Update resource limits; only the supplied limits are sent."""
        body = {
            "Memory": memory,
            "MemorySwap": memory_swap,
            "RestartPolicy": restart_policy,
        }
        data = await self._request(
            "POST",
            environment_id,
            f"/containers/{container_id}/update",
            body={k: v for k, v in body.items() if v is not None},
        )
        return ContainerUpdateResponse.model_validate(data or {})

    async def prune_containers(self, environment_id: int) -> ContainerPruneReport:
        data = await self._request("POST", environment_id, "/containers/prune")
        return ContainerPruneReport.model_validate(data or {})

    # Images

    async def list_images(self, environment_id: int) -> list[Image]:
        data = await self._request("GET", environment_id, "/images/json")
        return [Image.model_validate(item) for item in data or []]

    async def prune_build_cache(self, environment_id: int) -> BuildCachePruneReport:
        data = await self._request("POST", environment_id, "/build/prune")
        return BuildCachePruneReport.model_validate(data or {})

    async def prune_unused_images(self, environment_id: int) -> ImagePruneReport:
        """Remove every image not used by a container, not only dangling ones."""
        data = await self._request(
            "POST",
            environment_id,
            "/images/prune",
            params={"filters": {"dangling": ["false"]}},
        )
        return ImagePruneReport.model_validate(data or {})

    # Networks

    async def list_networks(self, environment_id: int) -> list[Network]:
        data = await self._request("GET", environment_id, "/networks")
        return [Network.model_validate(item) for item in data or []]

    async def inspect_network(self, environment_id: int, network_id: str) -> Network:
        data = await self._request("GET", environment_id, f"/networks/{network_id}")
        return Network.model_validate(data)

    # Services

    async def list_services(self, environment_id: int) -> list[Service]:
        data = await self._request("GET", environment_id, "/services")
        return [Service.model_validate(item) for item in data or []]

    async def service_logs(
        self,
        environment_id: int,
        service_id: str,
        stdout: bool = True,
        stderr: bool = True,
        follow: bool = False,
        timestamps: bool = False,
        tail: int = 10,
        since: int | None = None,
    ) -> str:
        data = await self._request(
            "GET",
            environment_id,
            f"/services/{service_id}/logs",
            params={
                "stdout": stdout,
                "stderr": stderr,
                "follow": follow,
                "timestamps": timestamps,
                "tail": tail,
                "since": since,
            },
            raw=True,
        )
        return demultiplex_docker_stream(data).decode("utf-8", "replace")

    async def inspect_service(self, environment_id: int, service_id: str) -> Service:
        data = await self._request("GET", environment_id, f"/services/{service_id}")
        return Service.model_validate(data)
