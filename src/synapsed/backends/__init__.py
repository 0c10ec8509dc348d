"""Proof Store, Peer Directory and Delivery Channel implementations."""

from .memory import InMemoryDeliveryChannel, InMemoryPeerStore, InMemoryProofStore

__all__ = [
    "InMemoryDeliveryChannel",
    "InMemoryPeerStore",
    "InMemoryProofStore",
]
