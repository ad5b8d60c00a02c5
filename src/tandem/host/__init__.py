"""Host side — peer client, sampling, approval, and the interactive menu."""

from tandem.host.approval import (
    ApprovalRequest,
    ApprovalResult,
    ApprovalTimeoutError,
    Approver,
    AutoApprover,
    ConsoleApprover,
)
from tandem.host.client import Catalog, HostClient
from tandem.host.driver import InteractiveDriver, QueryRunner
from tandem.host.generation import Generator, LiteLLMGenerator
from tandem.host.prompter import ConsolePrompter, Prompter
from tandem.host.sampling import SamplingHandler

__all__ = [
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalTimeoutError",
    "Approver",
    "AutoApprover",
    "Catalog",
    "ConsolePrompter",
    "ConsoleApprover",
    "Generator",
    "HostClient",
    "InteractiveDriver",
    "LiteLLMGenerator",
    "Prompter",
    "QueryRunner",
    "SamplingHandler",
]
