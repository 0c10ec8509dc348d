"""In-process stores and channel for local runs and tests."""

import logging
import uuid

from synapsed.clock import Clock, now_ms
from synapsed.errors import DeliveryError
from synapsed.peers import PeerConnectionRecord, PeerStatus
from synapsed.proofs import SubscriptionProof

logger = logging.getLogger(__name__)


class InMemoryProofStore:
    """Dictionary-backed Proof Store."""

    def __init__(self):
        self._proofs: dict[tuple[str, str], SubscriptionProof] = {}

    async def get(self, identity: str, proof_token: str) -> SubscriptionProof | None:
        return self._proofs.get((identity, proof_token))

    def add(self, identity: str, proof_token: str, expires_at: int) -> SubscriptionProof:
        """Record a proof. One identity may hold several tokens at once."""
        proof = SubscriptionProof(identity, proof_token, expires_at)
        self._proofs[(identity, proof_token)] = proof
        return proof

    def remove(self, identity: str, proof_token: str) -> bool:
        return self._proofs.pop((identity, proof_token), None) is not None

    def __len__(self) -> int:
        return len(self._proofs)


class InMemoryPeerStore:
    """Dictionary-backed Peer Directory store.

    Besides lookups, supports the connect/disconnect lifecycle so peers can
    be registered without an external directory.
    """

    def __init__(self, clock: Clock = now_ms):
        self._records: dict[str, PeerConnectionRecord] = {}
        self._clock = clock

    async def get(self, peer_id: str) -> PeerConnectionRecord | None:
        return self._records.get(peer_id)

    def put(self, record: PeerConnectionRecord) -> None:
        self._records[record.peer_id] = record

    def delete(self, peer_id: str) -> bool:
        return self._records.pop(peer_id, None) is not None

    def connect(
        self,
        endpoint: str,
        identity: str | None = None,
        peer_id: str | None = None,
    ) -> PeerConnectionRecord:
        """Register a connected peer, generating ids where not given.

        An identity that already holds a record keeps its peer id and gets a
        refreshed ``connected_at``.
        """
        if identity is not None and peer_id is None:
            existing = self.find_by_identity(identity)
            if existing is not None:
                peer_id = existing.peer_id

        record = PeerConnectionRecord(
            peer_id=peer_id or str(uuid.uuid4()),
            connection_id=str(uuid.uuid4()),
            endpoint=endpoint,
            status=PeerStatus.CONNECTED,
            connected_at=self._clock(),
            identity=identity,
        )
        self.put(record)
        logger.debug(f"Peer connected: {record.peer_id}")
        return record

    def disconnect(self, peer_id: str) -> bool:
        """Mark a peer disconnected. Returns False if unknown."""
        record = self._records.get(peer_id)
        if record is None:
            return False
        self._records[peer_id] = PeerConnectionRecord(
            peer_id=record.peer_id,
            connection_id=record.connection_id,
            endpoint=record.endpoint,
            status=PeerStatus.DISCONNECTED,
            connected_at=record.connected_at,
            identity=record.identity,
        )
        logger.debug(f"Peer disconnected: {peer_id}")
        return True

    def find_by_identity(self, identity: str) -> PeerConnectionRecord | None:
        for record in self._records.values():
            if record.identity == identity:
                return record
        return None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, peer_id: str) -> bool:
        return peer_id in self._records


class InMemoryDeliveryChannel:
    """Records submitted envelopes in order of arrival."""

    def __init__(self):
        self.submitted: list[tuple[str, bytes]] = []
        self._failure: str | None = None

    async def submit(self, body: bytes) -> str:
        if self._failure is not None:
            raise DeliveryError(self._failure)
        delivery_id = str(uuid.uuid4())
        self.submitted.append((delivery_id, body))
        return delivery_id

    def fail_with(self, reason: str | None) -> None:
        """Make every submission fail with ``reason``; None restores service."""
        self._failure = reason

    @property
    def bodies(self) -> list[bytes]:
        return [body for _, body in self.submitted]
