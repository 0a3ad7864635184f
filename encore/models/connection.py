"""Connection state of the persistent store, as tracked by the connection manager."""

from enum import Enum


class ConnectionState(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Lifecycle states of the store connection.

    The manager starts in CONNECTING.  Operations only run against the store
    while CONNECTED; in any other state they are queued.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
