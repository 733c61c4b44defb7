"""Portainer MCP: Docker management tools served over MCP through the Portainer API."""

__version__ = "0.1.0"
