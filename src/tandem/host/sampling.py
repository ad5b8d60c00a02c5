"""SamplingHandler — answers ``sampling/createMessage`` from the peer.

Each text message is shown to the operator, approved (or not), and then
generated by the host's model.  Messages that are declined, time out, or
carry non-text content contribute nothing to the reply.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from tandem.host.approval import ApprovalRequest, ApprovalTimeoutError
from tandem.protocol.errors import InvalidArgumentsError
from tandem.protocol.models import (
    Content,
    CreateMessageParams,
    CreateMessageResult,
    TextContent,
    dump,
)

if TYPE_CHECKING:
    from tandem.host.approval import Approver
    from tandem.host.generation import Generator

logger = logging.getLogger(__name__)


class SamplingHandler:
    """Request handler for ``sampling/createMessage``.

    Register it on a :class:`~tandem.protocol.session.HostSession` (or pass
    it to :class:`~tandem.host.client.HostClient`) before the handshake so the
    host declares the ``sampling`` capability.
    """

    def __init__(
        self,
        generator: Generator,
        approver: Approver,
        *,
        console: Console | None = None,
    ) -> None:
        self.generator = generator
        self.approver = approver
        self.console = console or Console()

    async def __call__(self, params: dict[str, Any]) -> dict[str, Any]:
        try:
            request = CreateMessageParams.model_validate(params)
        except ValidationError as exc:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidArgumentsError("sampling/createMessage", detail) from exc
        texts: list[str] = []
        for message in request.messages:
            text = await self.run_message(message.content, max_tokens=request.max_tokens)
            if text is not None:
                texts.append(text)

        result = CreateMessageResult(
            role="assistant",
            content=TextContent(text="\n".join(texts)),
            model=self.generator.model,
            stop_reason="endTurn",
        )
        return dump(result)

    async def run_message(self, content: Content, *, max_tokens: int | None = None) -> str | None:
        """Present, confirm, and generate one message; ``None`` if skipped."""
        if not isinstance(content, TextContent):
            logger.info("Skipping %s content in generation request", content.type)
            return None

        self.console.print(Panel(content.text, title="Generation request", expand=False))
        try:
            decision = await self.approver.request_approval(ApprovalRequest(text=content.text))
        except ApprovalTimeoutError as exc:
            logger.warning("%s; treating as declined", exc)
            return None
        if not decision.approved:
            logger.info("Generation declined: %s", decision.reason or "no reason given")
            return None

        text = await self.generator.generate(content.text, max_tokens=max_tokens)
        self.console.print(Panel(text, title="Generated", expand=False))
        return text
