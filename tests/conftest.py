"""Pytest configuration and shared fixtures."""

import asyncio

import pytest
import pytest_asyncio

from synapsed.backends.memory import (
    InMemoryDeliveryChannel,
    InMemoryPeerStore,
    InMemoryProofStore,
)
from synapsed.delivery import RelayDispatcher
from synapsed.gateway import SignalingGateway
from synapsed.ice import build_ice_servers
from synapsed.peers import PeerConnectionRecord, PeerDirectory, PeerStatus
from synapsed.proofs import ProofVerifier
from synapsed.validation import SignalingValidator

from tests.samples import NOW


@pytest.fixture(autouse=True)
def reset_logging_state():
    """Reset logging state before each test."""
    from synapsed.logging import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest_asyncio.fixture(autouse=True, loop_scope="function")
async def cleanup_aiohttp_sessions():
    """Let aiohttp connectors close before the loop does."""
    yield
    await asyncio.sleep(0)


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def proof_store():
    """Proof store with one live proof for did:example:2."""
    store = InMemoryProofStore()
    store.add("did:example:2", "p2", NOW + 60_000)
    return store


@pytest.fixture
def peer_store(clock):
    """Peer store with peer-9 connected."""
    store = InMemoryPeerStore(clock=clock)
    store.put(
        PeerConnectionRecord(
            peer_id="peer-9",
            connection_id="conn-9",
            endpoint="wss://relay.example.com/peer-9",
            status=PeerStatus.CONNECTED,
            connected_at=NOW - 1_000,
        )
    )
    return store


@pytest.fixture
def channel():
    """Recording delivery channel."""
    return InMemoryDeliveryChannel()


@pytest.fixture
def ice_servers():
    """ICE servers as built at startup."""
    return build_ice_servers(
        "stun:stun.l.google.com:19302",
        "turn:turn.example.com:3478",
        "relay-user",
        "relay-secret",
    )


@pytest.fixture
def gateway(proof_store, peer_store, channel, ice_servers, clock):
    """Gateway wired to in-memory backends."""
    return SignalingGateway(
        verifier=ProofVerifier(proof_store, timeout=1.0, clock=clock),
        validator=SignalingValidator(),
        directory=PeerDirectory(peer_store, timeout=1.0, clock=clock),
        dispatcher=RelayDispatcher(channel, timeout=1.0, clock=clock),
        ice_servers=ice_servers,
    )


@pytest.fixture
def auth_headers():
    """Headers carrying the live proof."""
    return {"X-DID": "did:example:2", "X-Subscription-Proof": "p2"}
