"""Remote capabilities: authentication and the document/function store."""

from .base import AuthBackend, RemoteBackend, RemoteFunctions

__all__ = ["AuthBackend", "RemoteBackend", "RemoteFunctions"]
