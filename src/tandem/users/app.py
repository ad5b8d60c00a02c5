"""The example users capability set served by ``tandem serve``.

Resources expose the record file, tools create records (one of them by
asking the host to generate a fake user), and a prompt template asks for a
fake user with a given name.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from tandem.protocol.errors import ProtocolError
from tandem.protocol.models import (
    CallToolResult,
    CreateMessageResult,
    GetPromptResult,
    PromptMessage,
    SamplingMessage,
    TextContent,
    ToolAnnotations,
)
from tandem.registry import CapabilityRegistry
from tandem.sampling import GeneratedContentError, parse_generated
from tandem.users.store import NewUser, UserStore

logger = logging.getLogger(__name__)

JSON_MIME = "application/json"

RANDOM_USER_PROMPT = (
    "Generate a fake user with a realistic name, email, address, and phone number "
    "in JSON format with the keys name, email, address, and phone."
)
RANDOM_USER_MAX_TOKENS = 1024

NOT_TEXT_FAILURE = "Response not text Failed to generate user data"
GENERATION_FAILURE = "Failed to generate user data"
SAVE_FAILURE = "Failed to save user"


@runtime_checkable
class Sampler(Protocol):
    """Something that can ask the host to generate a message."""

    async def create_message(
        self, messages: Sequence[SamplingMessage], max_tokens: int
    ) -> CreateMessageResult: ...


class FakeUserPromptArgs(BaseModel):
    name: str = Field(description="Name of the user to invent details for")


def _annotations(title: str) -> ToolAnnotations:
    return ToolAnnotations(
        title=title, read_only=False, destructive=False, idempotent=False, open_world=True
    )


class UserDirectory:
    """Handlers for the users capabilities, bound to one store and sampler."""

    def __init__(self, store: UserStore, sampler: Sampler | None = None) -> None:
        self.store = store
        self.sampler = sampler

    def all_users(self, _uri: str) -> str:
        return json.dumps([user.record() for user in self.store.load()])

    def user_details(self, _uri: str, params: dict[str, str]) -> str:
        try:
            user_id = int(params.get("userId", ""))
        except ValueError:
            user_id = None
        user = self.store.get(user_id) if user_id is not None else None
        if user is None:
            return json.dumps({"error": "User not found"})
        return json.dumps(user.record())

    def create_user(self, new_user: NewUser) -> CallToolResult:
        try:
            user_id = self.store.create(new_user)
        except Exception:
            logger.exception("Could not save user")
            return CallToolResult.from_text(SAVE_FAILURE)
        return CallToolResult.from_text(f"User {user_id} created successfully")

    async def create_random_user(self, _args: dict[str, object]) -> CallToolResult:
        if self.sampler is None:
            logger.warning("create-random-user called without a sampler")
            return CallToolResult.from_text(GENERATION_FAILURE)

        request = [SamplingMessage(role="user", content=TextContent(text=RANDOM_USER_PROMPT))]
        try:
            response = await self.sampler.create_message(request, RANDOM_USER_MAX_TOKENS)
        except (ProtocolError, ValidationError) as exc:
            logger.warning("Sampling failed: %s", exc)
            return CallToolResult.from_text(GENERATION_FAILURE)

        if not isinstance(response.content, TextContent):
            logger.warning("Sampling returned %s content, expected text", response.content.type)
            return CallToolResult.from_text(NOT_TEXT_FAILURE)

        try:
            new_user = parse_generated(response.content.text, NewUser)
        except GeneratedContentError as exc:
            logger.warning("%s: %r", exc, exc.text[:200])
            return CallToolResult.from_text(GENERATION_FAILURE)

        try:
            user_id = self.store.create(new_user)
        except Exception:
            logger.exception("Could not save generated user")
            return CallToolResult.from_text(GENERATION_FAILURE)
        return CallToolResult.from_text(f"User {user_id} created successfully")

    @staticmethod
    def generate_fake_user(args: FakeUserPromptArgs) -> GetPromptResult:
        text = (
            f"Generate a fake user with the name {args.name}. The user should have a "
            "realistic email, address, and phone number."
        )
        return GetPromptResult(
            messages=[PromptMessage(role="user", content=TextContent(text=text))]
        )


def build_user_registry(store: UserStore, sampler: Sampler | None = None) -> CapabilityRegistry:
    """Register the users resources, tools, and prompt on a new registry."""
    directory = UserDirectory(store, sampler)
    registry = CapabilityRegistry()

    registry.register_resource(
        "users",
        "users://all",
        directory.all_users,
        title="Users",
        description="Get all users data from the database",
        mime_type=JSON_MIME,
    )
    registry.register_resource_template(
        "user-details",
        "users://{userId}/profile",
        directory.user_details,
        title="User Details",
        description="Get a users details from the database",
        mime_type=JSON_MIME,
    )
    registry.register_tool(
        "create-user",
        directory.create_user,
        description="Create a new user in the database",
        arguments=NewUser,
        annotations=_annotations("Create user"),
    )
    registry.register_tool(
        "create-random-user",
        directory.create_random_user,
        description="Create a random user with fake data",
        annotations=_annotations("Create Random user"),
    )
    registry.register_prompt(
        "generate-fake-user",
        directory.generate_fake_user,
        description="Generate a fake user based on a given name",
        arguments=FakeUserPromptArgs,
    )
    return registry
