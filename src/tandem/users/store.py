"""UserStore — the JSON file of example user records.

The whole file is read on every call and rewritten in full on every append.
Nothing is cached between calls.  There is no locking: two concurrent
``create`` calls can read the same snapshot and one write will win.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)


class NewUser(BaseModel):
    """The fields a caller supplies when creating a user."""

    name: str = Field(description="Full name")
    email: str = Field(description="Email address")
    address: str = Field(description="Postal address")
    phone: str = Field(description="Phone number")


class User(NewUser):
    """A stored user record."""

    id: int

    def record(self) -> dict[str, object]:
        """The record as persisted, with ``id`` first."""
        return {"id": self.id, **self.model_dump(exclude={"id"})}


_USERS = TypeAdapter(list[User])


class UserStore:
    """Owns the path of the record file; see the module docstring for caveats."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[User]:
        """Return every stored user; a missing file is an empty store."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        if not raw.strip():
            return []
        return _USERS.validate_json(raw)

    def get(self, user_id: int) -> User | None:
        return next((user for user in self.load() if user.id == user_id), None)

    def create(self, new_user: NewUser) -> int:
        """Append *new_user* and return its id (``max(existing) + 1``)."""
        users = self.load()
        user_id = max((user.id for user in users), default=0) + 1
        users.append(User(id=user_id, **new_user.model_dump()))
        self._write(users)
        logger.info("Stored user %d in %s", user_id, self.path)
        return user_id

    def _write(self, users: list[User]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [user.record() for user in users]
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
