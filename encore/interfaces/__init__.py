"""Public interface definitions for every external service Encore depends on.

The persistent store, the cache, the analytics sink and the identity
provider are accessed exclusively through the abstract base classes in this
package.  Concrete adapters live in ``encore/providers/`` and are wired up
in ``encore/main.py``; unit tests inject fakes instead.

CONCRETE PROVIDER MAP:
    Interface             →  Concrete implementations (in encore/providers/)
    ─────────────────────────────────────────────────────────────────────
    IDocumentStore        →  SQLiteDocumentStore
    ICacheProvider        →  MemoryCacheProvider
    IAnalyticsProvider    →  LoggingAnalyticsProvider, PostHogAnalyticsProvider
    IIdentityProvider     →  LocalIdentityProvider
"""

from encore.interfaces.analytics_provider import IAnalyticsProvider
from encore.interfaces.cache_provider import ICacheProvider
from encore.interfaces.document_store import (
    MAX_IN_VALUES,
    FieldFilter,
    IDocumentStore,
    ITransaction,
    OrderBy,
)
from encore.interfaces.identity_provider import AuthSession, IIdentityProvider

__all__ = [
    "MAX_IN_VALUES",
    "AuthSession",
    "FieldFilter",
    "IAnalyticsProvider",
    "ICacheProvider",
    "IDocumentStore",
    "IIdentityProvider",
    "ITransaction",
    "OrderBy",
]
