"""DynamoDB stores and SQS delivery channel.

Item layout:
- proofs table, key ``did`` + ``proof``, attribute ``expiresAt`` (epoch ms
  as a string or number)
- peer table, key ``peerId``, attributes ``connectionId``, ``endpoint``,
  ``status``, ``connectedAt`` and optionally ``did``

boto3 clients are blocking, so every call runs in a worker thread.
"""

import asyncio
import logging
from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from synapsed.config import AwsConfig
from synapsed.errors import DeliveryError, StoreError
from synapsed.peers import PeerConnectionRecord
from synapsed.proofs import SubscriptionProof

logger = logging.getLogger(__name__)

PEER_ATTRIBUTES = ("peerId", "connectionId", "endpoint", "status", "connectedAt", "did")


def create_client(service_name: str, aws: AwsConfig) -> Any:
    """Create a boto3 client for the relay.

    Retries are left to the caller's timeout budget: the relay makes a single
    attempt per external call.
    """
    client_kwargs: dict[str, Any] = {
        "service_name": service_name,
        "config": BotoConfig(retries={"max_attempts": 1, "mode": "standard"}),
    }
    if aws.region:
        client_kwargs["region_name"] = aws.region
    if aws.endpoint_url:
        client_kwargs["endpoint_url"] = aws.endpoint_url
        logger.info(f"Using custom {service_name} endpoint: {aws.endpoint_url}")
    return boto3.client(**client_kwargs)


def _string(item: dict[str, Any], name: str) -> str:
    """Read a string or number attribute as text."""
    attribute = item[name]
    if "S" in attribute:
        return attribute["S"]
    if "N" in attribute:
        return attribute["N"]
    raise ValueError(f"Attribute {name} is not a string or number")


def _error_text(e: Exception) -> str:
    if isinstance(e, ClientError):
        return e.response.get("Error", {}).get("Code", "ClientError")
    return type(e).__name__


class DynamoDbProofStore:
    """Proof Store on a DynamoDB table."""

    def __init__(self, table: str, client: Any):
        """Initialize store.

        Args:
            table: Table name.
            client: boto3 DynamoDB client.
        """
        self.table = table
        self._client = client

    async def get(self, identity: str, proof_token: str) -> SubscriptionProof | None:
        return await asyncio.to_thread(self._get_sync, identity, proof_token)

    def _get_sync(self, identity: str, proof_token: str) -> SubscriptionProof | None:
        try:
            response = self._client.get_item(
                TableName=self.table,
                Key={"did": {"S": identity}, "proof": {"S": proof_token}},
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Proof lookup failed: {_error_text(e)}") from e

        item = response.get("Item")
        if not item:
            return None

        try:
            expires_at = int(_string(item, "expiresAt"))
        except (KeyError, ValueError) as e:
            raise StoreError(f"Malformed proof item: {e}") from e

        return SubscriptionProof(identity, proof_token, expires_at)


class DynamoDbPeerStore:
    """Peer Directory store on a DynamoDB table."""

    def __init__(self, table: str, client: Any):
        """Initialize store.

        Args:
            table: Table name.
            client: boto3 DynamoDB client.
        """
        self.table = table
        self._client = client

    async def get(self, peer_id: str) -> PeerConnectionRecord | None:
        return await asyncio.to_thread(self._get_sync, peer_id)

    def _get_sync(self, peer_id: str) -> PeerConnectionRecord | None:
        try:
            response = self._client.get_item(
                TableName=self.table,
                Key={"peerId": {"S": peer_id}},
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Peer lookup failed: {_error_text(e)}") from e

        item = response.get("Item")
        if not item:
            return None

        try:
            flat = {name: _string(item, name) for name in PEER_ATTRIBUTES if name in item}
            return PeerConnectionRecord.from_item(flat)
        except (KeyError, ValueError) as e:
            raise StoreError(f"Malformed peer item for {peer_id}: {e}") from e


class SqsDeliveryChannel:
    """Delivery Channel on an SQS queue."""

    def __init__(self, queue_url: str, client: Any):
        """Initialize channel.

        Args:
            queue_url: Signaling queue URL.
            client: boto3 SQS client.
        """
        self.queue_url = queue_url
        self._client = client

    async def submit(self, body: bytes) -> str:
        return await asyncio.to_thread(self._submit_sync, body)

    def _submit_sync(self, body: bytes) -> str:
        try:
            response = self._client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body.decode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise DeliveryError(f"SQS send failed: {_error_text(e)}") from e
        return response["MessageId"]
