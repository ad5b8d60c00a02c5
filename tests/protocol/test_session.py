"""Tests for session negotiation and state guards."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from tandem.protocol.errors import (
    INVALID_REQUEST,
    SESSION_NOT_READY,
    CapabilityNotSupportedError,
    RpcError,
    SessionClosedError,
    SessionNotReadyError,
    TransportClosedError,
)
from tandem.protocol.models import (
    PROTOCOL_VERSION,
    Capabilities,
    SamplingMessage,
    TextContent,
)
from tandem.protocol.session import HostSession, PeerSession, SessionState
from tandem.protocol.transport import create_memory_pair


async def _connected(
    host_capabilities: Capabilities | None = None,
) -> tuple[HostSession, PeerSession]:
    host_transport, peer_transport = create_memory_pair()
    peer = PeerSession(peer_transport, capabilities=Capabilities(tools={}))
    host = HostSession(host_transport, capabilities=host_capabilities)
    await peer.start()
    await host.connect()
    return host, peer


class TestHandshake:
    async def test_both_sides_reach_ready(self) -> None:
        host, peer = await _connected(Capabilities(sampling={}))

        assert host.state is SessionState.READY
        assert peer.state is SessionState.READY
        assert host.peer_capabilities == Capabilities(tools={})
        assert peer.peer_capabilities is not None
        assert peer.peer_capabilities.supports("sampling")
        assert host.peer_info is not None and host.peer_info.name == "tandem-peer"
        assert peer.peer_info is not None and peer.peer_info.name == "tandem-host"
        assert host.protocol_version == PROTOCOL_VERSION
        await host.close()

    async def test_peer_waits_in_negotiating(self) -> None:
        _host_transport, peer_transport = create_memory_pair()
        peer = PeerSession(peer_transport)
        assert peer.state is SessionState.DISCONNECTED

        await peer.start()

        assert peer.state is SessionState.NEGOTIATING
        await peer.close()

    async def test_second_initialize_is_rejected(self) -> None:
        host, _peer = await _connected()

        with pytest.raises(RpcError) as exc_info:
            await host.dispatcher.request("initialize", {"protocolVersion": PROTOCOL_VERSION})

        assert exc_info.value.code == INVALID_REQUEST
        await host.close()

    async def test_ping_works_in_every_open_state(self) -> None:
        host_transport, peer_transport = create_memory_pair()
        peer = PeerSession(peer_transport)
        await peer.start()

        host = HostSession(host_transport)
        await host._open()
        await host.ping()  # still negotiating
        await host.close()


class TestStateGuards:
    async def test_outbound_request_before_ready_raises(self) -> None:
        host_transport, _peer_transport = create_memory_pair()
        host = HostSession(host_transport)

        with pytest.raises(SessionNotReadyError):
            await host.request("tools/list")

    async def test_inbound_request_before_ready_is_refused(self) -> None:
        host_transport, peer_transport = create_memory_pair()
        peer = PeerSession(peer_transport)
        peer.register_handler("tools/list", lambda _params: {"tools": []})
        await peer.start()

        await host_transport.send(json.dumps({"jsonrpc": "2.0", "id": 1, "method": "tools/list"}))
        reply = json.loads(await asyncio.wait_for(host_transport.receive(), timeout=1))

        assert reply["error"]["code"] == SESSION_NOT_READY
        await peer.close()

    async def test_operations_after_close_raise(self) -> None:
        host, _peer = await _connected()
        await host.close()

        assert host.state is SessionState.CLOSED
        with pytest.raises(SessionClosedError):
            await host.request("tools/list")
        with pytest.raises(SessionClosedError):
            await host.notify("anything")

    async def test_remote_close_moves_to_closed(self) -> None:
        host, peer = await _connected()
        await peer.close()
        await asyncio.wait_for(host.wait_closed(), timeout=1)

        assert host.state is SessionState.CLOSED

    async def test_pending_requests_rejected_when_peer_goes_away(self) -> None:
        host, peer = await _connected()
        gate = asyncio.Event()

        async def never(_params: dict[str, Any]) -> dict[str, Any]:
            await gate.wait()
            return {}

        peer.register_handler("slow", never)
        tasks = [asyncio.create_task(host.request("slow")) for _ in range(3)]
        while host.dispatcher.pending_count < 3:
            await asyncio.sleep(0)

        await peer.close()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert [type(r) for r in results] == [TransportClosedError] * 3


class TestCreateMessage:
    async def test_requires_host_sampling_capability(self) -> None:
        host, peer = await _connected()
        messages = [SamplingMessage(role="user", content=TextContent(text="hi"))]

        with pytest.raises(CapabilityNotSupportedError):
            await peer.create_message(messages, 100)
        await host.close()

    async def test_round_trip_through_host_handler(self) -> None:
        host_transport, peer_transport = create_memory_pair()
        peer = PeerSession(peer_transport)
        host = HostSession(host_transport, capabilities=Capabilities(sampling={}))
        received: list[dict[str, Any]] = []

        def handler(params: dict[str, Any]) -> dict[str, Any]:
            received.append(params)
            return {
                "role": "assistant",
                "content": {"type": "text", "text": "generated"},
                "model": "test-model",
                "stopReason": "endTurn",
            }

        host.register_handler("sampling/createMessage", handler)
        await peer.start()
        await host.connect()

        result = await peer.create_message(
            [SamplingMessage(role="user", content=TextContent(text="make a user"))],
            1024,
            system_prompt="be brief",
        )

        assert result.role == "assistant"
        assert isinstance(result.content, TextContent)
        assert result.content.text == "generated"
        assert received[0]["maxTokens"] == 1024
        assert received[0]["systemPrompt"] == "be brief"
        await host.close()
