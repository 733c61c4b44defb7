"""Tool catalog, dispatch and reply formatting."""
