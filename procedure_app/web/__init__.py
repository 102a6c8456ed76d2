"""HTTP and websocket surface."""

from .rendering import ViewRenderer
from .server import ServerThread, create_app, serve, start_site

__all__ = [
    "ViewRenderer",
    "ServerThread",
    "create_app",
    "serve",
    "start_site",
]
