"""Abstract base class for the identity (authentication) provider.

Identity is external to Encore: a provider signs users up and in, hands out
bearer tokens, and resolves a token back to a stable user id.  Everything
else in Encore only ever sees that user id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from pydantic import BaseModel, ConfigDict

# Called with the signed-in user id, or None after sign-out.
AuthStateCallback = Callable[[str | None], None]


class AuthSession(BaseModel):
    """A signed-in session: the stable user id plus its bearer token."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    token: str


class IIdentityProvider(ABC):
    """Contract for authentication providers."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this provider."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / open resources.  Idempotent."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Register a new account and sign it in.

        Raises
        ------
        AuthenticationError
            If the email is malformed or taken, or the password is too weak.
        """

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in with existing credentials.

        Raises
        ------
        AuthenticationError
            If the credentials do not match an account.
        """

    @abstractmethod
    async def sign_out(self, user_id: str) -> None:
        """End every session of *user_id*; its outstanding tokens stop verifying."""

    @abstractmethod
    async def verify_token(self, token: str) -> str | None:
        """Return the user id a bearer *token* belongs to, or ``None``."""

    @abstractmethod
    def on_auth_state_changed(self, callback: AuthStateCallback) -> Callable[[], None]:
        """Register *callback* for sign-in/sign-out; returns an unsubscribe function."""
