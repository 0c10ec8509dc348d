"""Tests for in-memory backends."""

import pytest

from synapsed.backends.memory import (
    InMemoryDeliveryChannel,
    InMemoryPeerStore,
    InMemoryProofStore,
)
from synapsed.errors import DeliveryError
from synapsed.peers import PeerStatus
from tests.samples import NOW


class TestInMemoryProofStore:
    """Tests for InMemoryProofStore."""

    async def test_add_and_get(self):
        """Added proofs can be read back."""
        store = InMemoryProofStore()
        proof = store.add("did:example:1", "p1", NOW)

        assert await store.get("did:example:1", "p1") == proof

    async def test_get_missing(self):
        """Unknown pairs return None."""
        assert await InMemoryProofStore().get("did", "p") is None

    def test_remove(self):
        """Remove reports whether anything was removed."""
        store = InMemoryProofStore()
        store.add("did", "p", NOW)

        assert store.remove("did", "p") is True
        assert store.remove("did", "p") is False
        assert len(store) == 0


class TestInMemoryPeerStore:
    """Tests for InMemoryPeerStore."""

    async def test_connect_registers_peer(self):
        """connect creates a connected record stamped with the clock."""
        store = InMemoryPeerStore(clock=lambda: NOW)

        record = store.connect("10.0.0.5", identity="did:example:1")

        assert record.status is PeerStatus.CONNECTED
        assert record.connected_at == NOW
        assert record.identity == "did:example:1"
        assert await store.get(record.peer_id) == record
        assert record.peer_id in store

    def test_connect_with_explicit_peer_id(self):
        """A supplied peer id is used as-is."""
        store = InMemoryPeerStore(clock=lambda: NOW)

        assert store.connect("10.0.0.5", peer_id="peer-1").peer_id == "peer-1"

    def test_reconnect_keeps_peer_id(self):
        """Same identity reconnecting keeps its peer id with a new connection."""
        times = iter([NOW, NOW + 5_000])
        store = InMemoryPeerStore(clock=lambda: next(times))

        first = store.connect("10.0.0.5", identity="did:example:1")
        second = store.connect("10.0.0.6", identity="did:example:1")

        assert second.peer_id == first.peer_id
        assert second.connection_id != first.connection_id
        assert second.connected_at == NOW + 5_000
        assert len(store) == 1

    async def test_disconnect(self):
        """disconnect keeps the record but flips the status."""
        store = InMemoryPeerStore(clock=lambda: NOW)
        record = store.connect("10.0.0.5", peer_id="peer-1")

        assert store.disconnect("peer-1") is True
        stored = await store.get("peer-1")
        assert stored.status is PeerStatus.DISCONNECTED
        assert stored.connection_id == record.connection_id

    def test_disconnect_unknown(self):
        """Disconnecting an unknown peer returns False."""
        assert InMemoryPeerStore().disconnect("nobody") is False

    def test_delete(self):
        """delete removes the record."""
        store = InMemoryPeerStore(clock=lambda: NOW)
        store.connect("10.0.0.5", peer_id="peer-1")

        assert store.delete("peer-1") is True
        assert "peer-1" not in store

    def test_find_by_identity(self):
        """Records can be found by identity."""
        store = InMemoryPeerStore(clock=lambda: NOW)
        record = store.connect("10.0.0.5", identity="did:example:1")

        assert store.find_by_identity("did:example:1") == record
        assert store.find_by_identity("did:example:2") is None


class TestInMemoryDeliveryChannel:
    """Tests for InMemoryDeliveryChannel."""

    async def test_submit_records_body(self):
        """Submissions are recorded with unique ids."""
        channel = InMemoryDeliveryChannel()

        first = await channel.submit(b"one")
        second = await channel.submit(b"two")

        assert first != second
        assert channel.bodies == [b"one", b"two"]

    async def test_fail_with(self):
        """fail_with makes submissions raise until cleared."""
        channel = InMemoryDeliveryChannel()
        channel.fail_with("down")

        with pytest.raises(DeliveryError, match="down"):
            await channel.submit(b"one")

        channel.fail_with(None)
        await channel.submit(b"two")
        assert channel.bodies == [b"two"]
