"""tandem — bidirectional JSON-RPC sessions between a model host and a tool peer."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from tandem.host.client import HostClient as HostClient
    from tandem.server import PeerServer as PeerServer

_EXPORTS = {
    "HostClient": "tandem.host.client",
    "PeerServer": "tandem.server",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'tandem' has no attribute {name!r}")
