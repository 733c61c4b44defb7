"""
FastMCP Portainer Docker Server

An MCP server that manages Docker containers, images, networks and swarm
services through the Docker API proxied by Portainer.
"""

import argparse
import os
import sys
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .core.config_loader import DEFAULT_CONFIG_FILE, PortainerMCPConfig, load_config
from .core.exceptions import ConfigurationError
from .core.logging_config import get_server_logger
from .core.portainer_client import PortainerClient
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, TimingMiddleware
from .tools.dispatcher import TOOL_SPECS, DispatchedTool, ToolDispatcher

SERVER_NAME = "Portainer Docker Manager"


class PortainerMCPServer:
    """FastMCP server for Docker management via Portainer."""

    def _parse_env_float(self, var_name: str, default: float) -> float:
        """Safely parse environment variable as float with default fallback."""
        try:
            value = os.getenv(var_name)
            if value is None:
                return default
            return float(value)
        except ValueError:
            self.logger.warning(
                f"Invalid {var_name}; using default", value=os.getenv(var_name), default=default
            )
            return default

    def _parse_env_int(self, var_name: str, default: int) -> int:
        """Safely parse environment variable as int with default fallback."""
        try:
            value = os.getenv(var_name)
            if value is None:
                return default
            return int(value)
        except ValueError:
            self.logger.warning(
                f"Invalid {var_name}; using default", value=os.getenv(var_name), default=default
            )
            return default

    def _parse_env_bool(self, var_name: str, default: bool) -> bool:
        """Safely parse environment variable as bool with default fallback."""
        value = os.getenv(var_name)
        if value is None:
            return default
        return value.strip().lower() in ("1", "true", "yes", "on")

    def __init__(self, config: PortainerMCPConfig):
        self.config = config

        # Use server logger (writes to mcp_server.log)
        self.logger = get_server_logger()

        self.client = PortainerClient(config.portainer)
        self.dispatcher = ToolDispatcher(self.client)

        # FastMCP app will be created later to prevent auto-start
        self.app: FastMCP | None = None

        self.logger.info(
            "Portainer MCP Server initialized",
            base_url=config.portainer.base_url,
            timeout=config.portainer.timeout,
            server_config=config.server.model_dump(),
            config_file=config.config_file,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastMCP) -> AsyncIterator[dict[str, Any]]:
        """Share one HTTP session with Portainer for the lifetime of the server."""
        async with self.client:
            self.logger.debug("Portainer HTTP session opened")
            yield {"portainer_client": self.client}
        self.logger.debug("Portainer HTTP session closed")

    def _initialize_app(self) -> None:
        """Initialize FastMCP app, middleware, and register tools."""
        self.app = FastMCP(SERVER_NAME, lifespan=self._lifespan)

        self._configure_middleware()

        for spec in self.dispatcher.list_tools():
            self.app.add_tool(DispatchedTool.from_spec(spec, self.dispatcher))

        self.logger.info(
            "FastMCP app initialized",
            tools=[spec.name.value for spec in self.dispatcher.list_tools()],
            slow_request_threshold_ms=self._parse_env_float("SLOW_REQUEST_THRESHOLD_MS", 5000.0),
            logging="dual output (console + files)",
        )

    def _configure_middleware(self) -> None:
        """Configure FastMCP middleware stack."""
        if self.app is None:
            return
        # First added = first executed; error handling wraps everything else
        self.app.add_middleware(
            ErrorHandlingMiddleware(
                include_traceback=self.config.server.log_level.upper() == "DEBUG",
                track_error_stats=True,
            )
        )

        slow_threshold = self._parse_env_float("SLOW_REQUEST_THRESHOLD_MS", 5000.0)
        self.app.add_middleware(
            TimingMiddleware(
                slow_request_threshold_ms=slow_threshold,
                track_statistics=True,
                tool_names=[spec.name.value for spec in TOOL_SPECS],
            )
        )

        include_payloads = self._parse_env_bool("LOG_INCLUDE_PAYLOADS", True)
        max_payload_length = self._parse_env_int("LOG_MAX_PAYLOAD_LENGTH", 1000)
        self.app.add_middleware(
            LoggingMiddleware(
                include_payloads=include_payloads,
                max_payload_length=max_payload_length,
            )
        )

    def run(self) -> None:
        """Run the FastMCP server."""
        try:
            self._initialize_app()

            server_config = self.config.server
            self.logger.info(
                "Starting Portainer MCP Server",
                transport=server_config.transport,
                host=server_config.host if server_config.transport == "http" else None,
                port=server_config.port if server_config.transport == "http" else None,
            )

            if self.app is None:
                raise RuntimeError("FastMCP app not initialized")
            # FastMCP.run() is synchronous and manages its own event loop
            if server_config.transport == "http":
                self.app.run(
                    transport="http",
                    host=server_config.host,
                    port=server_config.port,
                )
            else:
                self.app.run(transport="stdio")

        except Exception as e:
            self.logger.error("Server startup failed", error=str(e))
            raise


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    try:
        from dotenv import load_dotenv

        load_dotenv()
    except Exception as e:
        # Environment loading shouldn't block startup
        import logging
        logging.getLogger("portainer_mcp").debug("Failed to load .env file: %s", str(e))

    parser = argparse.ArgumentParser(description="FastMCP Portainer Docker Manager")
    parser.add_argument(
        "--config",
        default=None,
        help=f"Configuration file path (default: $PORTAINER_MCP_CONFIG or {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--transport", choices=["stdio", "http"], default=None, help="MCP transport"
    )
    parser.add_argument("--host", default=None, help="Server host (http transport)")
    parser.add_argument("--port", type=int, default=None, help="Server port (http transport)")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )

    return parser.parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Nest the CLI flags that were given the way the config file lays them out."""
    server = {
        "transport": args.transport,
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    return {"server": {k: v for k, v in server.items() if v is not None}}


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    log_dir = _setup_log_directory()
    logger = _setup_logging_system(args, log_dir)

    config = _load_and_configure(args, logger)
    if config is None:  # Validation-only mode
        return

    server = PortainerMCPServer(config)
    _run_server(server, logger)


def _setup_log_directory() -> str | None:
    """Setup log directory with fallback options."""
    log_dir_candidates = [
        os.getenv("LOG_DIR"),
        str(Path.home() / ".local" / "share" / "portainer-mcp" / "logs"),
        str(Path(tempfile.gettempdir()) / "portainer-mcp-logs"),
    ]

    for candidate in log_dir_candidates:
        if candidate:
            try:
                candidate_path = Path(candidate)
                candidate_path.mkdir(parents=True, exist_ok=True)
                if candidate_path.is_dir() and os.access(candidate_path, os.W_OK):
                    return str(candidate_path)
            except OSError:
                continue

    # stdout carries the stdio transport
    print("Warning: Unable to create log directory, using console-only logging", file=sys.stderr)
    return None


def _setup_logging_system(args, log_dir: str | None):
    """Setup logging system with error handling."""
    from .core.logging_config import setup_logging

    try:
        max_file_size_mb = int(os.getenv("LOG_FILE_SIZE_MB", "10"))
        if max_file_size_mb < 1 or max_file_size_mb > 100:
            max_file_size_mb = 10
    except ValueError:
        max_file_size_mb = 10

    try:
        setup_logging(log_dir=log_dir, log_level=args.log_level, max_file_size_mb=max_file_size_mb)
        return get_server_logger()
    except Exception as e:
        print(f"Logging setup failed ({e}), using basic console logging", file=sys.stderr)
        import logging

        logging.basicConfig(
            level=getattr(logging, (args.log_level or "INFO").upper(), logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            stream=sys.stderr,
        )
        return logging.getLogger("portainer_mcp")


def _load_and_configure(args, logger) -> PortainerMCPConfig | None:
    """Load configuration, returning None for validation-only mode."""
    try:
        config = load_config(args.config, overrides=cli_overrides(args))
    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        sys.exit(2)

    if args.validate_config:
        logger.info(
            "✅ Configuration is valid",
            base_url=config.portainer.base_url,
            config_file=config.config_file,
        )
        return None

    return config


def _run_server(server: PortainerMCPServer, logger) -> None:
    """Run server with error handling."""
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error("Server error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
