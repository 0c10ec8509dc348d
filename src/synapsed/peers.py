"""Peer Directory lookup.

Resolves a target peer to its current connection record. Every way a peer
can be unreachable (no record, disconnected, stale, unreadable, store
timeout or failure) collapses into a single "not found" answer.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Protocol

from synapsed.clock import Clock, now_ms

logger = logging.getLogger(__name__)


class PeerStatus(Enum):
    """Connection status recorded by the peer lifecycle."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class PeerConnectionRecord:
    """A peer's connection metadata."""

    peer_id: str
    connection_id: str
    endpoint: str
    status: PeerStatus
    connected_at: int  # epoch ms
    identity: str | None = None

    @property
    def is_connected(self) -> bool:
        return self.status is PeerStatus.CONNECTED

    def to_item(self) -> dict[str, Any]:
        """Convert to the stored attribute layout."""
        item = {
            "peerId": self.peer_id,
            "connectionId": self.connection_id,
            "endpoint": self.endpoint,
            "status": self.status.value,
            "connectedAt": str(self.connected_at),
        }
        if self.identity is not None:
            item["did"] = self.identity
        return item

    @classmethod
    def from_item(cls, item: Mapping[str, Any]) -> "PeerConnectionRecord":
        """Create from the stored attribute layout.

        Raises:
            KeyError, ValueError: If the item is incomplete or malformed.
        """
        return cls(
            peer_id=item["peerId"],
            connection_id=item["connectionId"],
            endpoint=item["endpoint"],
            status=PeerStatus(item["status"]),
            connected_at=int(item["connectedAt"]),
            identity=item.get("did"),
        )


class PeerStore(Protocol):
    """Read access to peer connection records."""

    async def get(self, peer_id: str) -> PeerConnectionRecord | None:
        """Returns the record, or None if absent. Raises StoreError on failure."""
        ...


class PeerDirectory:
    """Resolves peers for the relay.

    Exactly one store lookup per call, no retries. Status is a point-in-time
    hint; a peer reported connected may already be gone.
    """

    DEFAULT_TIMEOUT = 5.0
    DEFAULT_MAX_CONNECTION_AGE = 30 * 60.0  # seconds

    def __init__(
        self,
        store: PeerStore,
        timeout: float = DEFAULT_TIMEOUT,
        max_connection_age: float | None = DEFAULT_MAX_CONNECTION_AGE,
        clock: Clock = now_ms,
    ):
        """Initialize directory client.

        Args:
            store: Peer store backend.
            timeout: Seconds to wait for the store.
            max_connection_age: Seconds after which a connected record is
                treated as stale. None disables the check.
            clock: Returns epoch milliseconds (injectable for tests).
        """
        self._store = store
        self._timeout = timeout
        self._max_age_ms = (
            int(max_connection_age * 1000) if max_connection_age is not None else None
        )
        self._clock = clock

    async def lookup(self, peer_id: str) -> PeerConnectionRecord | None:
        """Return the peer's record if it is reachable, else None."""
        try:
            async with asyncio.timeout(self._timeout):
                record = await self._store.get(peer_id)
        except TimeoutError:
            logger.warning(f"Peer lookup timed out for {peer_id}")
            return None
        except Exception as e:
            logger.warning(f"Peer lookup failed for {peer_id}: {e}")
            return None

        if record is None:
            logger.debug(f"Peer {peer_id} not registered")
            return None

        if not record.is_connected:
            logger.debug(f"Peer {peer_id} is {record.status.value}")
            return None

        if self._max_age_ms is not None:
            age = self._clock() - record.connected_at
            if age > self._max_age_ms:
                logger.debug(f"Peer {peer_id} connection is stale ({age // 1000}s old)")
                return None

        return record
