"""Smoke test to verify the project scaffolding works."""

from __future__ import annotations

import pytest


def test_import() -> None:
    import tandem

    assert tandem.__version__ == "0.1.0"


def test_cli_entrypoint() -> None:
    from tandem.cli import main

    assert callable(main)
    assert set(main.commands) == {"serve", "host", "catalog"}


def test_protocol_imports() -> None:
    from tandem.protocol import (
        Dispatcher,
        HostSession,
        PeerSession,
        ProtocolError,
        StdioTransport,
        StreamTransport,
    )

    assert Dispatcher is not None
    assert HostSession is not None
    assert PeerSession is not None
    assert ProtocolError is not None
    assert StdioTransport is not None
    assert StreamTransport is not None


def test_lazy_import_from_tandem() -> None:
    import tandem

    assert tandem.HostClient is not None
    assert tandem.PeerServer is not None


def test_unknown_attribute() -> None:
    import tandem

    with pytest.raises(AttributeError):
        tandem.NotAThing  # noqa: B018
