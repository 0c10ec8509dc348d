"""Wires backends and relay components from configuration.

All construction happens here, once per process, so the components
themselves never read configuration or the environment.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from synapsed.backends.memory import (
    InMemoryDeliveryChannel,
    InMemoryPeerStore,
    InMemoryProofStore,
)
from synapsed.config import Config, MemoryConfig, validate_config
from synapsed.delivery import DeliveryChannel, RelayDispatcher
from synapsed.errors import ConfigError
from synapsed.gateway import SignalingGateway
from synapsed.ice import IceServer, ice_servers_from_config
from synapsed.peers import PeerDirectory, PeerStore
from synapsed.proofs import ProofStore, ProofVerifier
from synapsed.validation import SignalingValidator

logger = logging.getLogger(__name__)


@dataclass
class Backends:
    """External collaborators the relay talks to."""

    proof_store: ProofStore
    peer_store: PeerStore
    channel: DeliveryChannel


@dataclass
class Components:
    """Container for the wired relay."""

    backends: Backends
    ice_servers: tuple[IceServer, ...]
    gateway: SignalingGateway


def create_backends(
    config: Config,
    client_factory: Optional[Callable[[str], Any]] = None,
) -> Backends:
    """Create the configured backends.

    Args:
        config: Validated configuration.
        client_factory: Builds a boto3 client by service name (for testing).

    Returns:
        Backends for ``config.backend``.
    """
    if config.backend == "aws":
        from synapsed.backends.aws import (
            DynamoDbPeerStore,
            DynamoDbProofStore,
            SqsDeliveryChannel,
            create_client,
        )

        make_client = client_factory or (lambda name: create_client(name, config.aws))
        dynamodb = make_client("dynamodb")
        sqs = make_client("sqs")
        logger.info(
            f"Using DynamoDB tables {config.proof_store.table}, "
            f"{config.peer_directory.table} and queue {config.delivery.queue_url}"
        )
        return Backends(
            proof_store=DynamoDbProofStore(config.proof_store.table, dynamodb),
            peer_store=DynamoDbPeerStore(config.peer_directory.table, dynamodb),
            channel=SqsDeliveryChannel(config.delivery.queue_url, sqs),
        )

    proof_store = InMemoryProofStore()
    peer_store = InMemoryPeerStore()
    seed_memory_backends(config.memory, proof_store, peer_store)
    logger.info(
        f"Using in-memory backends ({len(proof_store)} proofs, {len(peer_store)} peers)"
    )
    return Backends(
        proof_store=proof_store,
        peer_store=peer_store,
        channel=InMemoryDeliveryChannel(),
    )


def seed_memory_backends(
    seed: MemoryConfig,
    proof_store: InMemoryProofStore,
    peer_store: InMemoryPeerStore,
) -> None:
    """Load the ``memory`` config section into in-memory stores.

    Seeded peers are connected as of startup, so they go stale after
    ``peer_directory.max_connection_age`` like any other connection.

    Raises:
        ConfigError: If an entry is missing a key or has a bad value.
    """
    try:
        for entry in seed.proofs:
            proof_store.add(entry["did"], entry["proof"], int(entry["expires_at"]))
        for entry in seed.peers:
            peer_store.connect(
                endpoint=entry.get("endpoint", "local"),
                identity=entry.get("did"),
                peer_id=entry["peer_id"],
            )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid memory seed entry: {e!r}") from e


def create_components(
    config: Config,
    backends: Optional[Backends] = None,
) -> Components:
    """Create a fully wired gateway.

    Args:
        config: Configuration, environment overrides already applied.
        backends: Pre-built backends; created from config when None.

    Returns:
        Components holding the gateway and what it was built from.

    Raises:
        ConfigError: If the configuration is unusable.
    """
    validate_config(config)

    if backends is None:
        backends = create_backends(config)

    ice_servers = ice_servers_from_config(config.ice)
    logger.info(f"ICE servers: {', '.join(server.urls for server in ice_servers)}")

    timeout = config.request_timeout
    gateway = SignalingGateway(
        verifier=ProofVerifier(backends.proof_store, timeout=timeout),
        validator=SignalingValidator(),
        directory=PeerDirectory(
            backends.peer_store,
            timeout=timeout,
            max_connection_age=config.peer_directory.max_connection_age,
        ),
        dispatcher=RelayDispatcher(backends.channel, timeout=timeout),
        ice_servers=ice_servers,
    )
    return Components(backends=backends, ice_servers=ice_servers, gateway=gateway)
