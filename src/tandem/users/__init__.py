"""Example user-records application served by the peer."""

from tandem.users.app import Sampler, UserDirectory, build_user_registry
from tandem.users.store import NewUser, User, UserStore

__all__ = [
    "NewUser",
    "Sampler",
    "User",
    "UserDirectory",
    "UserStore",
    "build_user_registry",
]
