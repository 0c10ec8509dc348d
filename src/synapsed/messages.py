"""WebRTC signaling message types.

A signaling message is one of three frozen variants. SDP and candidate
payloads are opaque: only their leading prefix is ever inspected.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union


class SignalingType(Enum):
    """Closed set of forwarded message types (wire values)."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"

    @classmethod
    def parse(cls, value: Any) -> "SignalingType | None":
        """Return the matching type, or None for anything outside the set."""
        for member in cls:
            if member.value == value:
                return member
        return None


@dataclass(frozen=True)
class Offer:
    """SDP offer."""

    peer_id: str
    sdp: str
    from_peer_id: str | None = None

    type = SignalingType.OFFER

    def to_fields(self) -> dict[str, Any]:
        return _common_fields(self) | {"sdp": self.sdp}


@dataclass(frozen=True)
class Answer:
    """SDP answer."""

    peer_id: str
    sdp: str
    from_peer_id: str | None = None

    type = SignalingType.ANSWER

    def to_fields(self) -> dict[str, Any]:
        return _common_fields(self) | {"sdp": self.sdp}


@dataclass(frozen=True)
class IceCandidate:
    """Trickled ICE candidate."""

    peer_id: str
    candidate: str
    from_peer_id: str | None = None

    type = SignalingType.ICE_CANDIDATE

    def to_fields(self) -> dict[str, Any]:
        return _common_fields(self) | {"candidate": self.candidate}


SignalingMessage = Union[Offer, Answer, IceCandidate]


def _common_fields(message: SignalingMessage) -> dict[str, Any]:
    fields: dict[str, Any] = {"type": message.type.value, "peerId": message.peer_id}
    if message.from_peer_id is not None:
        fields["fromPeerId"] = message.from_peer_id
    return fields


def carries_ice_servers(message: SignalingMessage) -> bool:
    """Offers and answers get the ICE server list, candidates do not."""
    return isinstance(message, (Offer, Answer))


def _freeze(mapping: dict) -> Mapping:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ValidatorRules:
    """Per-type validation rules.

    Constructed once and shared read-only by every validator instance.
    """

    required_fields: Mapping[SignalingType, tuple[str, ...]] = field(
        default_factory=lambda: _freeze({
            SignalingType.OFFER: ("sdp",),
            SignalingType.ANSWER: ("sdp",),
            SignalingType.ICE_CANDIDATE: ("candidate",),
        })
    )
    format_prefixes: Mapping[str, str] = field(
        default_factory=lambda: _freeze({
            "sdp": "v=0",
            "candidate": "candidate:",
        })
    )

    @property
    def valid_types(self) -> frozenset[SignalingType]:
        return frozenset(self.required_fields)


DEFAULT_RULES = ValidatorRules()
