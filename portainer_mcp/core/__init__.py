"""Core components: configuration, logging, exceptions and the Portainer client."""
