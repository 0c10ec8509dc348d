"""Base exceptions for the signaling relay."""


class SynapsedError(Exception):
    """Base exception for all relay errors."""

    pass


class ConfigError(SynapsedError):
    """Configuration is unusable."""

    pass


class StoreError(SynapsedError):
    """Proof Store or Peer Directory operation failed."""

    pass


class DeliveryError(SynapsedError):
    """Delivery Channel rejected or failed a submission."""

    pass
