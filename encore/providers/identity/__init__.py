"""Identity providers."""

from encore.providers.identity.local_identity_provider import LocalIdentityProvider

__all__ = ["LocalIdentityProvider"]
