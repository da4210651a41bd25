"""Web transport for webshell.

Public API:
    create_app -- FastAPI application factory
    ShellSession -- Per-request caller session
"""

from webshell.endpoint.session import ShellSession

__all__ = ["ShellSession", "create_app"]


def __getattr__(name: str) -> object:
    """Lazy import for the server, which pulls in FastAPI and uvicorn."""
    if name == "create_app":
        from webshell.endpoint.server import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
