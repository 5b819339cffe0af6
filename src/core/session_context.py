"""Session context types threaded explicitly through data and mutation calls."""
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID


class AuthType(StrEnum):
    """Authentication method used for the session."""

    JWT = "jwt"
    DEV = "dev"


@dataclass(frozen=True)
class UserIdentity:
    """The authenticated owner of a session."""

    id: UUID
    email: str | None = None


@dataclass(frozen=True)
class SessionContext:
    """
    Caller's credentials, passed as a value instead of read from ambient state.

    `access_token` is the bearer token presented to the hosted service. `user` is
    filled in once the token has been verified; clients may also construct a
    context with only a token and let the data service resolve it.
    """

    access_token: str | None = None
    user: UserIdentity | None = None
    auth_type: AuthType = AuthType.JWT

    @property
    def is_authenticated(self) -> bool:
        """True once an identity has been resolved."""
        return self.user is not None

    def with_user(self, user: UserIdentity | None) -> "SessionContext":
        """Return a copy of this context bound to `user`."""
        return SessionContext(access_token=self.access_token, user=user, auth_type=self.auth_type)
