"""Configuration management for the signaling relay."""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from synapsed.errors import ConfigError


DEFAULT_STUN_SERVER = "stun:stun.l.google.com:19302"

BACKENDS = ("memory", "aws")


@dataclass
class ProofStoreConfig:
    """Subscription proof table."""

    table: str = "synapsed-subscription-proofs"


@dataclass
class PeerDirectoryConfig:
    """Peer connection table."""

    table: str = "synapsed-peer-connections"
    max_connection_age: float | None = 1800.0  # seconds, None disables


@dataclass
class DeliveryConfig:
    """Delivery Channel address."""

    queue_url: str = ""


@dataclass
class AwsConfig:
    """AWS client settings (credentials come from the boto3 chain)."""

    region: str | None = None
    endpoint_url: str | None = None  # LocalStack and friends


@dataclass
class MemoryConfig:
    """Seed data for the in-memory backend (local runs only).

    ``proofs`` entries: ``did``, ``proof``, ``expires_at`` (epoch ms).
    ``peers`` entries: ``peer_id``, optional ``endpoint`` and ``did``.
    """

    proofs: list[dict[str, Any]] = field(default_factory=list)
    peers: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class IceConfig:
    """STUN/TURN servers handed to peers with offers and answers."""

    stun_servers: list[str] = field(default_factory=lambda: [DEFAULT_STUN_SERVER])
    turn_servers: list[str] = field(default_factory=list)
    turn_username: str = ""
    turn_credential: str = ""


@dataclass
class Config:
    """Relay configuration."""

    port: int = 8080
    bind_address: str = "0.0.0.0"
    log_level: str = "INFO"
    log_file: str | None = None
    request_timeout: float = 5.0  # seconds, per external call
    max_body_size: int = 256 * 1024  # bytes
    backend: str = "memory"
    proof_store: ProofStoreConfig = field(default_factory=ProofStoreConfig)
    peer_directory: PeerDirectoryConfig = field(default_factory=PeerDirectoryConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    aws: AwsConfig = field(default_factory=AwsConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    ice: IceConfig = field(default_factory=IceConfig)


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "synapsed" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# Nested sections of Config, by YAML key.
SECTIONS = {
    "proof_store": ProofStoreConfig,
    "peer_directory": PeerDirectoryConfig,
    "delivery": DeliveryConfig,
    "aws": AwsConfig,
    "memory": MemoryConfig,
    "ice": IceConfig,
}


def _known_keys(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only the keys ``cls`` declares; unknown keys are ignored."""
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Missing keys keep their defaults. A missing, empty or unparseable file
    yields the default Config.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config built from the file.
    """
    reader = file_reader or _default_file_reader
    data = reader(get_config_path(path))

    if not isinstance(data, dict):
        return Config()

    sections = {}
    for name, cls in SECTIONS.items():
        section_data = data.get(name)
        if not isinstance(section_data, dict):
            section_data = {}
        sections[name] = cls(**_known_keys(cls, section_data))

    top_level = {k: v for k, v in _known_keys(Config, data).items() if k not in SECTIONS}
    return Config(**top_level, **sections)


def apply_env_overrides(config: Config, env: Mapping[str, str]) -> Config:
    """Overlay deployment environment variables onto a config.

    Recognised variables: SUBSCRIPTION_PROOFS_TABLE, PEER_CONNECTIONS_TABLE,
    SIGNALING_QUEUE_URL, STUN_SERVER, TURN_SERVER, TURN_USERNAME and
    TURN_CREDENTIAL. The server lists are comma-separated.

    Args:
        config: Base configuration (not modified).
        env: Environment mapping, usually ``os.environ``.

    Returns:
        A new Config with environment values taking precedence.
    """
    proof_store = config.proof_store
    if env.get("SUBSCRIPTION_PROOFS_TABLE"):
        proof_store = replace(proof_store, table=env["SUBSCRIPTION_PROOFS_TABLE"])

    peer_directory = config.peer_directory
    if env.get("PEER_CONNECTIONS_TABLE"):
        peer_directory = replace(peer_directory, table=env["PEER_CONNECTIONS_TABLE"])

    delivery = config.delivery
    if env.get("SIGNALING_QUEUE_URL"):
        delivery = replace(delivery, queue_url=env["SIGNALING_QUEUE_URL"])

    ice = config.ice
    if "STUN_SERVER" in env:
        ice = replace(ice, stun_servers=_split_csv(env["STUN_SERVER"]))
    if "TURN_SERVER" in env:
        ice = replace(ice, turn_servers=_split_csv(env["TURN_SERVER"]))
    if "TURN_USERNAME" in env:
        ice = replace(ice, turn_username=env["TURN_USERNAME"])
    if "TURN_CREDENTIAL" in env:
        ice = replace(ice, turn_credential=env["TURN_CREDENTIAL"])

    return replace(
        config,
        proof_store=proof_store,
        peer_directory=peer_directory,
        delivery=delivery,
        ice=ice,
    )


def validate_config(config: Config) -> None:
    """Reject configurations the relay cannot start with.

    Raises:
        ConfigError: On an unknown backend, a non-positive timeout or body size,
            a non-positive connection age, or an AWS backend without a delivery queue.
    """
    if config.backend not in BACKENDS:
        raise ConfigError(
            f"Unknown backend {config.backend!r}, expected one of {', '.join(BACKENDS)}"
        )
    if config.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")
    if config.max_body_size <= 0:
        raise ConfigError("max_body_size must be positive")
    age = config.peer_directory.max_connection_age
    if age is not None and age <= 0:
        raise ConfigError("peer_directory.max_connection_age must be positive or null")
    if config.backend == "aws" and not config.delivery.queue_url:
        raise ConfigError("aws backend requires delivery.queue_url (SIGNALING_QUEUE_URL)")
