"""Signaling request lifecycle.

Each request makes one short-circuiting pass:

    Received -> headers -> proof -> body -> validation -> peer -> delivery

and ends in exactly one Outcome. The gateway keeps no memory between
requests; the ICE server list is the only shared value and it is immutable.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from synapsed.delivery import DeliveryFailure, RelayDispatcher
from synapsed.ice import IceServer, ice_servers_to_list
from synapsed.messages import Offer
from synapsed.peers import PeerDirectory
from synapsed.proofs import ProofVerifier
from synapsed.validation import SignalingValidator

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "X-DID"
PROOF_HEADER = "X-Subscription-Proof"

FORWARDED_MESSAGE = "Signaling message forwarded"


class Outcome(Enum):
    """Terminal state of a request."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"
    INTERNAL_ERROR = "internal_error"

    @property
    def status(self) -> int:
        return STATUS_CODES[self]


STATUS_CODES = {
    Outcome.UNAUTHORIZED: 400,  # missing header, not a credential failure
    Outcome.FORBIDDEN: 403,
    Outcome.BAD_REQUEST: 400,
    Outcome.NOT_FOUND: 404,
    Outcome.DELIVERED: 200,
    Outcome.DELIVERY_FAILED: 500,
    Outcome.INTERNAL_ERROR: 500,
}


@dataclass(frozen=True)
class GatewayResult:
    """What the caller gets back."""

    outcome: Outcome
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> int:
        return self.outcome.status

    @classmethod
    def error(cls, outcome: Outcome, message: str) -> "GatewayResult":
        return cls(outcome=outcome, body={"error": message})


def _header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    return value or None


class SignalingGateway:
    """Orchestrates verifier, validator, directory and dispatcher.

    Usage:
        gateway = SignalingGateway(verifier, validator, directory, dispatcher, ice)
        result = await gateway.handle(request.headers, await request.read())
        return web.json_response(result.body, status=result.status)
    """

    def __init__(
        self,
        verifier: ProofVerifier,
        validator: SignalingValidator,
        directory: PeerDirectory,
        dispatcher: RelayDispatcher,
        ice_servers: Sequence[IceServer],
    ):
        self._verifier = verifier
        self._validator = validator
        self._directory = directory
        self._dispatcher = dispatcher
        self._ice_servers = tuple(ice_servers)

    @property
    def ice_servers(self) -> tuple[IceServer, ...]:
        return self._ice_servers

    async def handle(self, headers: Mapping[str, str], body: bytes | str | None) -> GatewayResult:
        """Run one request through the state machine.

        Never raises: unexpected exceptions become INTERNAL_ERROR with a
        generic body, and the cause is logged.
        """
        try:
            return await self._handle(headers, body)
        except Exception:
            logger.exception("Error processing signaling request")
            return GatewayResult.error(Outcome.INTERNAL_ERROR, "Internal server error")

    async def _handle(self, headers: Mapping[str, str], body: bytes | str | None) -> GatewayResult:
        identity = _header(headers, IDENTITY_HEADER)
        if identity is None:
            return GatewayResult.error(Outcome.UNAUTHORIZED, f"Missing {IDENTITY_HEADER} header")

        proof_token = _header(headers, PROOF_HEADER)
        if proof_token is None:
            return GatewayResult.error(Outcome.UNAUTHORIZED, f"Missing {PROOF_HEADER} header")

        if not await self._verifier.verify(identity, proof_token):
            return GatewayResult.error(
                Outcome.FORBIDDEN, "Invalid or expired subscription proof"
            )

        fields = self._parse_body(body)
        if fields is None:
            return GatewayResult.error(Outcome.BAD_REQUEST, "Invalid JSON body")

        raw_type = fields.get("type")
        peer_id = fields.get("peerId")
        if raw_type is None or not isinstance(peer_id, str) or not peer_id:
            return GatewayResult.error(
                Outcome.BAD_REQUEST, "Missing required fields: type, peerId"
            )

        validation = self._validator.validate(raw_type, fields)
        if not validation.is_valid:
            return GatewayResult.error(Outcome.BAD_REQUEST, validation.error_detail)
        message = validation.message

        target = await self._directory.lookup(peer_id)
        if target is None:
            return GatewayResult.error(Outcome.NOT_FOUND, "Peer not found or not connected")

        result = await self._dispatcher.dispatch(message, target, self._ice_servers)
        if isinstance(result, DeliveryFailure):
            return GatewayResult.error(Outcome.DELIVERY_FAILED, result.reason)

        response: dict[str, Any] = {
            "message": FORWARDED_MESSAGE,
            "deliveryId": result.delivery_id,
        }
        if isinstance(message, Offer):
            response["attemptDirectConnection"] = True
            response["iceServers"] = ice_servers_to_list(self._ice_servers)
        return GatewayResult(outcome=Outcome.DELIVERED, body=response)

    @staticmethod
    def _parse_body(body: bytes | str | None) -> dict[str, Any] | None:
        if not body:
            return None
        try:
            fields = json.loads(body)
        except (ValueError, UnicodeDecodeError, RecursionError):
            return None
        if not isinstance(fields, dict):
            return None
        return fields
