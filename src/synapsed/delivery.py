"""Relay envelope assembly and handoff to the Delivery Channel."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, Union

from synapsed.clock import Clock, now_ms
from synapsed.ice import IceServer, ice_servers_to_list
from synapsed.messages import Offer, SignalingMessage, carries_ice_servers
from synapsed.peers import PeerConnectionRecord

logger = logging.getLogger(__name__)


class DeliveryChannel(Protocol):
    """At-least-once transport towards the target peer's session."""

    async def submit(self, body: bytes) -> str:
        """Submit a serialized envelope. Returns the delivery id.

        Raises DeliveryError on failure.
        """
        ...


@dataclass(frozen=True)
class RelayEnvelope:
    """A signaling message enriched with routing metadata."""

    message: SignalingMessage
    timestamp: int  # epoch ms, assigned by the relay
    target: PeerConnectionRecord
    from_peer_id: str | None = None
    ice_servers: tuple[IceServer, ...] | None = None

    @property
    def attempt_direct_connection(self) -> bool:
        return isinstance(self.message, Offer)

    def to_dict(self) -> dict[str, Any]:
        """Render the envelope in wire form."""
        body = self.message.to_fields()
        if self.from_peer_id is not None:
            body["fromPeerId"] = self.from_peer_id
        body["timestamp"] = self.timestamp
        body["targetPeerId"] = self.target.peer_id
        body["targetConnectionId"] = self.target.connection_id
        body["targetEndpoint"] = self.target.endpoint
        if self.ice_servers is not None:
            body["iceServers"] = ice_servers_to_list(self.ice_servers)
        if self.attempt_direct_connection:
            body["attemptDirectConnection"] = True
        return body

    def serialize(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class DeliveryReceipt:
    """Successful handoff."""

    delivery_id: str
    envelope: RelayEnvelope


@dataclass(frozen=True)
class DeliveryFailure:
    """Failed handoff.

    ``reason`` is safe to show to callers. ``cause`` is the channel error (or
    the timeout) for logs and inspection; it is never rendered.
    """

    reason: str
    cause: Exception | None = field(default=None, repr=False, compare=False)


DeliveryResult = Union[DeliveryReceipt, DeliveryFailure]


class RelayDispatcher:
    """Builds envelopes and submits them to the Delivery Channel.

    One submission attempt per message; durability and redelivery belong to
    the channel. Two messages to the same peer may be delivered in either
    order.
    """

    DEFAULT_TIMEOUT = 5.0
    FAILURE_REASON = "Error forwarding signaling message"

    def __init__(
        self,
        channel: DeliveryChannel,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
    ):
        """Initialize dispatcher.

        Args:
            channel: Delivery Channel backend.
            timeout: Seconds to wait for the channel to accept.
            clock: Returns epoch milliseconds (injectable for tests).
        """
        self._channel = channel
        self._timeout = timeout
        self._clock = clock

    def build_envelope(
        self,
        message: SignalingMessage,
        target: PeerConnectionRecord,
        ice_servers: Sequence[IceServer],
        sender_peer_id: str | None = None,
    ) -> RelayEnvelope:
        """Assemble the envelope for a message."""
        sender = sender_peer_id if sender_peer_id is not None else message.from_peer_id
        return RelayEnvelope(
            message=message,
            timestamp=self._clock(),
            target=target,
            from_peer_id=sender,
            ice_servers=tuple(ice_servers) if carries_ice_servers(message) else None,
        )

    async def dispatch(
        self,
        message: SignalingMessage,
        target: PeerConnectionRecord,
        ice_servers: Sequence[IceServer],
        sender_peer_id: str | None = None,
    ) -> DeliveryResult:
        """Forward a validated message to a resolved peer.

        Args:
            message: Validated signaling message.
            target: Reachable peer record from the directory.
            ice_servers: Process-wide ICE server list.
            sender_peer_id: Overrides the message's ``fromPeerId``.

        Returns:
            DeliveryReceipt on success, DeliveryFailure otherwise.
        """
        envelope = self.build_envelope(message, target, ice_servers, sender_peer_id)
        sender = envelope.from_peer_id or "unknown"

        try:
            body = envelope.serialize()
            async with asyncio.timeout(self._timeout):
                delivery_id = await self._channel.submit(body)
        except TimeoutError as e:
            logger.error(
                f"Delivery timed out forwarding {message.type.value} to {target.peer_id}"
            )
            return DeliveryFailure(self.FAILURE_REASON, cause=e)
        except Exception as e:
            logger.error(
                f"Delivery failed forwarding {message.type.value} to {target.peer_id}: {e}"
            )
            return DeliveryFailure(self.FAILURE_REASON, cause=e)

        logger.info(
            f"Forwarding {message.type.value} from {sender} to {target.peer_id} "
            f"(MessageId: {delivery_id})"
        )
        return DeliveryReceipt(delivery_id=delivery_id, envelope=envelope)
