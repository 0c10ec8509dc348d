"""Subscription proof verification.

A caller proves entitlement with an (identity, proof token) pair that the
Proof Store maps to an expiry timestamp. Verification is fail-closed: a
missing record, an expired one, a slow store or a broken store all look the
same to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from synapsed.clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionProof:
    """A subscription proof as held by the Proof Store."""

    identity: str
    proof_token: str
    expires_at: int  # epoch ms

    def is_valid_at(self, now: int) -> bool:
        """A proof is valid strictly before its expiry."""
        return now < self.expires_at


class ProofStore(Protocol):
    """Read access to subscription proofs, keyed by (identity, proof token)."""

    async def get(self, identity: str, proof_token: str) -> SubscriptionProof | None:
        """Returns the proof, or None if absent. Raises StoreError on failure."""
        ...


def _short(identity: str) -> str:
    return identity if len(identity) <= 24 else f"{identity[:24]}..."


class ProofVerifier:
    """Checks subscription proofs against the Proof Store.

    Proofs are not consumed: one proof can back any number of requests until
    it expires. Expiry is evaluated on every call, never cached.
    """

    DEFAULT_TIMEOUT = 5.0

    def __init__(
        self,
        store: ProofStore,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Clock = now_ms,
    ):
        """Initialize verifier.

        Args:
            store: Proof Store backend.
            timeout: Seconds to wait for the store before failing closed.
            clock: Returns epoch milliseconds (injectable for tests).
        """
        self._store = store
        self._timeout = timeout
        self._clock = clock

    async def verify(self, identity: str, proof_token: str) -> bool:
        """Return True iff a proof exists for the pair and has not expired."""
        try:
            async with asyncio.timeout(self._timeout):
                proof = await self._store.get(identity, proof_token)
        except TimeoutError:
            logger.warning(f"Proof lookup timed out for {_short(identity)}")
            return False
        except Exception as e:
            logger.warning(f"Proof lookup failed for {_short(identity)}: {e}")
            return False

        if proof is None:
            logger.debug(f"No proof on record for {_short(identity)}")
            return False

        try:
            valid = proof.is_valid_at(self._clock())
        except Exception as e:
            logger.warning(f"Malformed proof for {_short(identity)}: {e}")
            return False

        if not valid:
            logger.debug(f"Expired proof for {_short(identity)}")
        return valid
