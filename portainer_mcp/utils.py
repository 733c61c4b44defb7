"""Utility functions for Portainer MCP."""


def format_size(size_bytes: int) -> str:
    """Format bytes into human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable size string with appropriate unit

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(1024)
        '1.0 KB'
        >>> format_size(1536870912)
        '1.4 GB'
    """
    if size_bytes == 0:
        return "0 B"

    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


def short_id(resource_id: str, length: int = 12) -> str:
    """Shorten a Docker ID the way the Docker CLI does."""
    if resource_id.startswith("sha256:"):
        resource_id = resource_id[len("sha256:") :]
    return resource_id[:length]
