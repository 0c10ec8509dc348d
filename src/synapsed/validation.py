"""Validation for inbound signaling messages.

Checks, in order:
- type is one of offer, answer, ice-candidate
- the type's required field is present and non-empty
- the field carries the expected prefix (``v=0`` for SDP, ``candidate:``
  for ICE candidates)

Validation is pure: no I/O and no state, so one validator serves every
request concurrently.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Mapping, Optional

from synapsed.messages import (
    DEFAULT_RULES,
    Answer,
    IceCandidate,
    Offer,
    SignalingMessage,
    SignalingType,
    ValidatorRules,
)


class ValidationError(Enum):
    """Validation error codes."""

    INVALID_TYPE = auto()
    MISSING_FIELD = auto()
    INVALID_FORMAT = auto()


@dataclass(frozen=True)
class ValidationResult:
    """Result of message validation."""

    is_valid: bool
    error: Optional[ValidationError] = None
    error_detail: Optional[str] = None
    message: Optional[SignalingMessage] = None

    @classmethod
    def ok(cls, message: SignalingMessage) -> "ValidationResult":
        return cls(is_valid=True, message=message)

    @classmethod
    def fail(cls, error: ValidationError, detail: str) -> "ValidationResult":
        return cls(is_valid=False, error=error, error_detail=detail)


def _format_detail(field_name: str, type_name: str) -> str:
    if field_name == "candidate":
        return "Invalid ICE candidate format"
    if field_name == "sdp":
        return f"Invalid SDP format for {type_name}"
    return f"Invalid {field_name} format for {type_name}"


class SignalingValidator:
    """Validates raw signaling payloads and builds typed messages.

    Usage:
        validator = SignalingValidator()
        result = validator.validate(body.get("type"), body)
        if not result.is_valid:
            return bad_request(result.error_detail)
        message = result.message
    """

    def __init__(self, rules: ValidatorRules = DEFAULT_RULES):
        """Initialize validator.

        Args:
            rules: Immutable per-type rules, shared across instances.
        """
        self._rules = rules

    @property
    def rules(self) -> ValidatorRules:
        return self._rules

    def validate(self, raw_type: Any, raw_fields: Mapping[str, Any]) -> ValidationResult:
        """Validate a signaling payload.

        ``peerId`` is checked by the caller before this runs; it is copied
        onto the message as-is.

        Args:
            raw_type: Value of the ``type`` key.
            raw_fields: The full request body.

        Returns:
            ValidationResult holding the typed message when valid.
        """
        signaling_type = SignalingType.parse(raw_type)
        if signaling_type is None or signaling_type not in self._rules.valid_types:
            return ValidationResult.fail(
                ValidationError.INVALID_TYPE,
                f"Invalid signaling type: {raw_type}",
            )

        type_name = signaling_type.value
        required = self._rules.required_fields[signaling_type]

        # Present-but-null or empty counts as missing
        for field_name in required:
            value = raw_fields.get(field_name)
            if value is None or value == "":
                return ValidationResult.fail(
                    ValidationError.MISSING_FIELD,
                    f"Missing required field for {type_name}: {field_name}",
                )

        for field_name in required:
            prefix = self._rules.format_prefixes.get(field_name)
            if prefix is None:
                continue
            value = raw_fields[field_name]
            if not isinstance(value, str) or not value.startswith(prefix):
                return ValidationResult.fail(
                    ValidationError.INVALID_FORMAT,
                    _format_detail(field_name, type_name),
                )

        from_peer_id = raw_fields.get("fromPeerId")
        if from_peer_id is not None and not isinstance(from_peer_id, str):
            return ValidationResult.fail(
                ValidationError.INVALID_FORMAT,
                f"Invalid fromPeerId for {type_name}",
            )

        return ValidationResult.ok(
            self._build(signaling_type, raw_fields.get("peerId", ""), from_peer_id, raw_fields)
        )

    def _build(
        self,
        signaling_type: SignalingType,
        peer_id: str,
        from_peer_id: str | None,
        raw_fields: Mapping[str, Any],
    ) -> SignalingMessage:
        if signaling_type is SignalingType.OFFER:
            return Offer(peer_id=peer_id, sdp=raw_fields["sdp"], from_peer_id=from_peer_id)
        if signaling_type is SignalingType.ANSWER:
            return Answer(peer_id=peer_id, sdp=raw_fields["sdp"], from_peer_id=from_peer_id)
        return IceCandidate(
            peer_id=peer_id,
            candidate=raw_fields["candidate"],
            from_peer_id=from_peer_id,
        )
