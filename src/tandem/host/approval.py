"""Approval gates for generation requests coming from the peer.

- ``Approver`` — runtime-checkable protocol for approval gates.
- ``ConsoleApprover`` — asks the operator on the rich console, reads stdin.
- ``AutoApprover`` — always approves (for testing/CI).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field
from rich.console import Console

logger = logging.getLogger(__name__)


class ApprovalTimeoutError(Exception):
    """The operator did not answer in time."""

    def __init__(self, action: str, timeout: float) -> None:
        self.action = action
        self.timeout = timeout
        super().__init__(f"Approval timed out for {action} after {timeout}s")


class ApprovalRequest(BaseModel):
    """A request to approve running a generation step."""

    action: str = "generate"
    text: str = Field(default="", description="The prompt that would be sent to the model.")
    metadata: dict[str, Any] = Field(default_factory=dict)


class ApprovalResult(BaseModel):
    """The approver's decision."""

    approved: bool
    reason: str = Field(default="")


@runtime_checkable
class Approver(Protocol):
    """Decides whether a generation step should run."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        """Ask for approval and return the decision."""
        ...


class AutoApprover:
    """Always approves.

    Satisfies the :class:`Approver` protocol.
    """

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        logger.debug("AutoApprover: auto-approving %s", request.action)
        return ApprovalResult(approved=True, reason="auto-approved")


class ConsoleApprover:
    """Asks the operator at the terminal; Enter means yes.

    Satisfies the :class:`Approver` protocol.

    Uses ``loop.run_in_executor(None, input)`` so the event loop keeps
    serving the transport while waiting.  Raises if no answer arrives within
    *timeout*.

    A blocking ``input()`` cannot be cancelled: after a timeout the executor
    thread keeps waiting and consumes the next line the operator types.
    """

    def __init__(self, *, timeout: float = 300.0, console: Console | None = None) -> None:
        self._timeout = timeout
        self.console = console or Console()

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        self._print_question(request)

        loop = asyncio.get_running_loop()
        try:
            answer: str = await asyncio.wait_for(
                loop.run_in_executor(None, self._read_input),
                timeout=self._timeout,
            )
        except TimeoutError:
            raise ApprovalTimeoutError(request.action, self._timeout) from None

        approved = answer.strip().lower() in ("", "y", "yes")
        reason = "" if approved else "declined by operator"
        return ApprovalResult(approved=approved, reason=reason)

    def _print_question(self, request: ApprovalRequest) -> None:
        self.console.print(f"Do you want to {request.action} this? [Y/n]: ", end="", markup=False)

    @staticmethod
    def _read_input() -> str:
        """Blocking read from stdin (run in executor)."""
        return input()
