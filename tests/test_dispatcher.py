"""Tests for the tool catalog and dispatcher."""

import pytest

from portainer_mcp.core.config_loader import PortainerSettings
from portainer_mcp.core.portainer_client import PortainerClient
from portainer_mcp.models.enums import ToolName
from portainer_mcp.tools.dispatcher import TOOL_SPECS, ToolDispatcher

from .conftest import API_KEY

CONTAINERS = [
    {"Id": "aaa111", "Names": ["/alpha"], "Image": "nginx", "State": "running", "Status": "Up"},
    {"Id": "bbb222", "Names": ["/bravo"], "Image": "redis", "State": "exited", "Status": "Exited"},
    {"Id": "ccc333", "Names": ["/charlie"], "Image": "pg", "State": "paused", "Status": "Paused"},
]


def text_of(result) -> str:
    assert len(result.content) == 1
    return result.content[0].text


class TestCatalog:
    def test_catalog_order_matches_tool_names(self, dispatcher):
        names = [spec.name for spec in dispatcher.list_tools()]
        assert names == list(ToolName)

    def test_every_tool_requires_environment_id(self):
        for spec in TOOL_SPECS:
            schema = spec.input_schema
            assert schema["type"] == "object"
            assert "environment_id" in schema["required"], spec.name

    @pytest.mark.parametrize(
        "name, required",
        [
            (ToolName.CREATE_CONTAINER, {"environment_id", "name", "image"}),
            (ToolName.DELETE_CONTAINER, {"environment_id", "container_id"}),
            (ToolName.FETCH_CONTAINER_LOGS, {"environment_id", "container_id"}),
            (ToolName.INSPECT_NETWORK, {"environment_id", "network_id"}),
            (ToolName.FETCH_SERVICE_LOGS, {"environment_id", "service_id"}),
            (ToolName.DELETE_UNUSED_IMAGES, {"environment_id"}),
        ],
    )
    def test_required_fields(self, dispatcher, name, required):
        spec = dispatcher.get_tool(name.value)
        assert set(spec.input_schema["required"]) == required

    def test_optional_defaults_in_schema(self, dispatcher):
        properties = dispatcher.get_tool("fetch_container_logs").input_schema["properties"]
        assert properties["stdout"]["default"] is True
        assert properties["follow"]["default"] is False
        assert properties["tail"]["default"] == 10
        delete_props = dispatcher.get_tool("delete_container").input_schema["properties"]
        assert delete_props["force"]["default"] is False

    def test_catalog_is_static(self, dispatcher, fake_portainer):
        assert dispatcher.list_tools() == dispatcher.list_tools()
        assert fake_portainer.requests == []


class TestCallTool:
    async def test_fetch_containers_lists_each_container_once_in_order(
        self, dispatcher, fake_portainer
    ):
        fake_portainer.respond("GET", "/containers/json", CONTAINERS)

        result = await dispatcher.call_tool("fetch_containers", {"environment_id": 1})

        text = text_of(result)
        positions = []
        for container in CONTAINERS:
            name = container["Names"][0].lstrip("/")
            for value in (container["Id"], name, container["State"]):
                assert text.count(value) == 1, value
            positions.append(text.index(container["Id"]))
        assert positions == sorted(positions)
        assert result.structured_content["success"] is True
        assert result.structured_content["tool"] == "fetch_containers"
        assert result.structured_content["formatted_output"] == text

    async def test_repeated_calls_are_deterministic(self, dispatcher, fake_portainer):
        fake_portainer.respond("GET", "/containers/json", CONTAINERS)

        first = await dispatcher.call_tool("fetch_containers", {"environment_id": 1})
        second = await dispatcher.call_tool("fetch_containers", {"environment_id": 1})

        assert text_of(first) == text_of(second)

    async def test_unknown_tool(self, dispatcher, fake_portainer):
        result = await dispatcher.call_tool("reboot_host", {"environment_id": 1})

        assert text_of(result) == "Failed: Unknown tool: reboot_host"
        assert result.structured_content["error_kind"] == "unknown_tool"
        assert result.is_error is False
        assert fake_portainer.requests == []

    @pytest.mark.parametrize("arguments", [None, {}])
    async def test_missing_arguments(self, dispatcher, fake_portainer, arguments):
        result = await dispatcher.call_tool("fetch_containers", arguments)

        assert text_of(result) == "Failed: No arguments provided for tool: fetch_containers"
        assert fake_portainer.requests == []

    async def test_invalid_arguments(self, dispatcher, fake_portainer):
        result = await dispatcher.call_tool("start_container", {"environment_id": "abc"})

        text = text_of(result)
        assert text.startswith("Failed: Invalid arguments for start_container: ")
        assert "environment_id: " in text
        assert "container_id: " in text
        fields = [problem["field"] for problem in result.structured_content["problems"]]
        assert fields == ["environment_id", "container_id"]
        assert result.structured_content["error_kind"] == "invalid_arguments"
        assert fake_portainer.requests == []

    @pytest.mark.parametrize(
        "name, arguments",
        [
            ("delete_container", {"environment_id": 1, "container_id": "../.."}),
            ("start_container", {"environment_id": 1, "container_id": "a/b"}),
            ("fetch_container_logs", {"environment_id": 1, "container_id": "abc?tail=all"}),
            ("inspect_network", {"environment_id": 1, "network_id": "../../../../users"}),
            ("inspect_service", {"environment_id": 1, "service_id": ".hidden"}),
        ],
    )
    async def test_ids_outside_docker_alphabet_rejected(
        self, dispatcher, fake_portainer, name, arguments
    ):
        result = await dispatcher.call_tool(name, arguments)

        assert text_of(result).startswith(f"Failed: Invalid arguments for {name}: ")
        assert result.structured_content["error_kind"] == "invalid_arguments"
        assert fake_portainer.requests == []

    async def test_create_container_accepts_registry_image(self, dispatcher, fake_portainer):
        fake_portainer.respond("POST", "/containers/create", {"Id": "new1", "Warnings": []})

        await dispatcher.call_tool(
            "create_container",
            {"environment_id": 1, "name": "web", "image": "registry.local:5000/team/web:1.2"},
        )

        assert fake_portainer.last_request.body["Image"] == "registry.local:5000/team/web:1.2"

    async def test_upstream_404_becomes_failed_reply(self, dispatcher, fake_portainer):
        fake_portainer.respond(
            "POST", "/containers/nope/start", {"message": "No such container: nope"}, status=404
        )

        result = await dispatcher.call_tool(
            "start_container", {"environment_id": 1, "container_id": "nope"}
        )

        assert text_of(result) == (
            'Failed: Portainer API error: 404 - {"message": "No such container: nope"}'
        )
        assert result.structured_content == {
            "success": False,
            "error": 'Portainer API error: 404 - {"message": "No such container: nope"}',
            "error_kind": "upstream_rejected",
        }

    async def test_unreachable_becomes_failed_reply(self):
        settings = PortainerSettings(base_url="http://127.0.0.1:1", api_key=API_KEY, timeout=2)
        dispatcher = ToolDispatcher(PortainerClient(settings))

        result = await dispatcher.call_tool("fetch_images", {"environment_id": 1})

        assert text_of(result).startswith("Failed: No response received from Portainer API:")
        assert result.structured_content["error_kind"] == "unreachable"

    async def test_unexpected_error_without_message_uses_fallback(self, dispatcher, monkeypatch):
        async def explode(environment_id):
            raise RuntimeError()

        monkeypatch.setattr(dispatcher.client, "list_networks", explode)

        result = await dispatcher.call_tool("fetch_networks", {"environment_id": 1})

        assert text_of(result) == "Failed: Cannot process the request"
        assert result.structured_content["error_kind"] == "internal"

    async def test_delete_container_default_force(self, dispatcher, fake_portainer):
        fake_portainer.respond("DELETE", "/containers/abc", status=204)

        omitted = await dispatcher.call_tool(
            "delete_container", {"environment_id": 1, "container_id": "abc"}
        )
        explicit = await dispatcher.call_tool(
            "delete_container", {"environment_id": 1, "container_id": "abc", "force": False}
        )

        assert text_of(omitted) == text_of(explicit)
        assert [r.query for r in fake_portainer.requests] == [{"force": "false"}] * 2

    async def test_fetch_container_logs_defaults(self, dispatcher, fake_portainer):
        fake_portainer.respond("GET", "/containers/abc/logs", raw=b"first\nsecond\n")

        result = await dispatcher.call_tool(
            "fetch_container_logs", {"environment_id": 1, "container_id": "abc"}
        )

        assert fake_portainer.last_request.query == {
            "stdout": "true",
            "stderr": "true",
            "follow": "false",
            "timestamps": "false",
            "tail": "10",
        }
        text = text_of(result)
        assert "first" in text
        assert "second" in text

    async def test_create_container_reply(self, dispatcher, fake_portainer):
        fake_portainer.respond("POST", "/containers/create", {"Id": "new123", "Warnings": []})

        result = await dispatcher.call_tool(
            "create_container", {"environment_id": 1, "name": "web", "image": "nginx"}
        )

        text = text_of(result)
        assert "web" in text
        assert "new123" in text

    async def test_update_container_limits(self, dispatcher, fake_portainer):
        fake_portainer.respond("POST", "/containers/abc/update", {"Warnings": []})

        result = await dispatcher.call_tool(
            "update_container_limits",
            {"environment_id": 1, "container_id": "abc", "memory": 536870912},
        )

        assert fake_portainer.last_request.body == {"Memory": 536870912}
        assert "512.0 MB" in text_of(result)

    async def test_prunes_use_distinct_endpoints(self, dispatcher, fake_portainer):
        fake_portainer.respond("POST", "/images/prune", {"ImagesDeleted": None, "SpaceReclaimed": 0})
        fake_portainer.respond("POST", "/build/prune", {"CachesDeleted": [], "SpaceReclaimed": 0})
        fake_portainer.respond(
            "POST", "/containers/prune", {"ContainersDeleted": ["x"], "SpaceReclaimed": 1024}
        )

        unused = await dispatcher.call_tool("delete_unused_images", {"environment_id": 1})
        cache = await dispatcher.call_tool("delete_image_build_cache", {"environment_id": 1})
        stopped = await dispatcher.call_tool("delete_stopped_containers", {"environment_id": 1})

        paths = [r.path.rsplit("/docker", 1)[1] for r in fake_portainer.requests]
        assert paths == ["/images/prune", "/build/prune", "/containers/prune"]
        assert "0 unused images" in text_of(unused)
        assert "0 build cache entries" in text_of(cache)
        assert "1.0 KB" in text_of(stopped)

    async def test_inspect_network_and_service(self, dispatcher, fake_portainer):
        fake_portainer.respond(
            "GET",
            "/networks/net1",
            {
                "Id": "net1",
                "Name": "frontend",
                "Driver": "overlay",
                "Containers": {"c1": {"Name": "web", "IPv4Address": "10.0.0.2/24"}},
            },
        )
        fake_portainer.respond(
            "GET",
            "/services/svc1",
            {"ID": "svc1", "Spec": {"Name": "api", "Mode": {"Global": {}}}},
        )

        network = await dispatcher.call_tool(
            "inspect_network", {"environment_id": 1, "network_id": "net1"}
        )
        service = await dispatcher.call_tool(
            "inspect_service", {"environment_id": 1, "service_id": "svc1"}
        )

        assert "frontend" in text_of(network)
        assert "10.0.0.2/24" in text_of(network)
        assert "api" in text_of(service)
        assert "global" in text_of(service)

    async def test_empty_lists(self, dispatcher, fake_portainer):
        fake_portainer.respond("GET", "/services", [])

        result = await dispatcher.call_tool("fetch_services", {"environment_id": 1})

        assert text_of(result) == "No services found in environment 1"
