"""Sign-up, sign-in and user profiles.

Credentials and tokens belong to the identity provider; this service only
keeps the ``users/{uid}`` profile document in step with it and reports the
account events to analytics.
"""

from __future__ import annotations

from encore.interfaces.document_store import IDocumentStore, ITransaction
from encore.interfaces.identity_provider import AuthSession, IIdentityProvider
from encore.models.entities import User
from encore.models.refs import EntityKind
from encore.services.analytics_service import AnalyticsService
from encore.utils.logging import get_logger

_USERS = EntityKind.USERS.value


def display_name_from_email(email: str) -> str:
    """``"jane.doe@example.com"`` -> ``"jane.doe"``; ``"User"`` when nothing is left."""
    local = (email or "").split("@", 1)[0].strip()
    return local or "User"


class AccountService:
    """Account lifecycle on top of an :class:`IIdentityProvider`."""

    def __init__(
        self,
        store: IDocumentStore,
        identity: IIdentityProvider,
        analytics: AnalyticsService,
    ) -> None:
        self._store = store
        self._identity = identity
        self._analytics = analytics
        self._logger = get_logger(__name__)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        """Register the account, write its profile and sign it in.

        Raises
        ------
        AuthenticationError
            Malformed or taken email, or a password shorter than 6 characters.
        """
        session = await self._identity.sign_up(email, password)
        profile = User(
            uid=session.user_id,
            email=session.email,
            display_name=display_name_from_email(session.email),
        )
        await self._store.set(_USERS, session.user_id, profile.to_document())
        self._logger.info("user_profile_written", user_id=session.user_id)
        self._analytics.log_sign_up(session.user_id)
        await self._analytics.set_user_id(session.user_id)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        session = await self._identity.sign_in(email, password)
        self._logger.info("session_started", user_id=session.user_id)
        self._analytics.log_login(session.user_id)
        await self._analytics.set_user_id(session.user_id)
        return session

    async def sign_out(self, user_id: str) -> None:
        await self._identity.sign_out(user_id)
        self._logger.info("session_ended", user_id=user_id)
        self._analytics.log_logout(user_id)
        await self._analytics.set_user_id(None)

    async def verify_token(self, token: str) -> str | None:
        return await self._identity.verify_token(token)

    async def get_user(self, user_id: str) -> User:
        """Return the profile of *user_id*, creating a default one if none exists.

        Creation happens inside a transaction so a concurrent first read
        never overwrites a profile written in between.
        """

        async def _get_or_create(tx: ITransaction) -> User:
            doc = await tx.get(_USERS, user_id)
            if doc is not None:
                return User.from_document(user_id, doc)
            profile = User(uid=user_id)
            tx.set(_USERS, user_id, profile.to_document())
            self._logger.info("user_profile_created", user_id=user_id)
            return profile

        return await self._store.run_transaction(_get_or_create)

    async def get_display_name(self, user_id: str) -> str:
        return (await self.get_user(user_id)).display_name
