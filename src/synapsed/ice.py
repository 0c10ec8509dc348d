"""ICE server list attached to offer and answer envelopes.

Built once at startup from configuration and never mutated afterwards, so
concurrent requests share it without locking.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from synapsed.config import DEFAULT_STUN_SERVER, IceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IceServer:
    """A single STUN or TURN server entry."""

    urls: str
    username: str | None = None
    credential: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the RTCIceServer-shaped dictionary peers expect."""
        entry: dict[str, Any] = {"urls": self.urls}
        if self.username is not None:
            entry["username"] = self.username
        if self.credential is not None:
            entry["credential"] = self.credential
        return entry


def _has_host_port(url: str, scheme: str) -> bool:
    return url.startswith(scheme) and ":" in url[len(scheme):]


def is_valid_stun_url(url: str) -> bool:
    """Check a STUN URL looks like ``stun:host:port``."""
    return bool(url) and _has_host_port(url, "stun:")


def is_valid_turn_url(url: str) -> bool:
    """Check a TURN URL looks like ``turn:host:port``."""
    return bool(url) and _has_host_port(url, "turn:")


def parse_url_list(value: str | Iterable[str] | None) -> list[str]:
    """Normalise a comma-separated string or list of URLs.

    Entries are trimmed and empty entries dropped; order is preserved.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(url).strip() for url in value if str(url).strip()]


def build_ice_servers(
    stun_urls: str | Iterable[str] | None,
    turn_urls: str | Iterable[str] | None = None,
    turn_username: str | None = "",
    turn_credential: str | None = "",
) -> tuple[IceServer, ...]:
    """Build the process-wide ICE server list.

    Invalid entries are dropped silently (logged at debug). If no STUN entry
    survives, the default Google STUN server is used. TURN entries are only
    added when the URL list, username and credential are all non-empty, and
    every TURN entry shares the one username/credential pair.

    Args:
        stun_urls: STUN URLs, comma-separated or as a list.
        turn_urls: TURN URLs, comma-separated or as a list.
        turn_username: Shared TURN username.
        turn_credential: Shared TURN credential.

    Returns:
        Immutable, order-stable tuple of servers.
    """
    servers: list[IceServer] = []

    for url in parse_url_list(stun_urls):
        if is_valid_stun_url(url):
            servers.append(IceServer(urls=url))
        else:
            logger.debug(f"Dropping invalid STUN url: {url}")

    if not servers:
        servers.append(IceServer(urls=DEFAULT_STUN_SERVER))

    turn_list = parse_url_list(turn_urls)
    if turn_list and turn_username and turn_credential:
        for url in turn_list:
            if is_valid_turn_url(url):
                servers.append(
                    IceServer(urls=url, username=turn_username, credential=turn_credential)
                )
            else:
                logger.debug(f"Dropping invalid TURN url: {url}")

    return tuple(servers)


def ice_servers_from_config(config: IceConfig) -> tuple[IceServer, ...]:
    """Build the ICE server list from the ``ice`` config section."""
    return build_ice_servers(
        config.stun_servers,
        config.turn_servers,
        config.turn_username,
        config.turn_credential,
    )


def ice_servers_to_list(servers: Iterable[IceServer]) -> list[dict[str, Any]]:
    """Render servers for JSON."""
    return [server.to_dict() for server in servers]
