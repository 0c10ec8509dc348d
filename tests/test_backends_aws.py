"""Tests for DynamoDB and SQS backends with stubbed boto3 clients."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from synapsed.backends.aws import (
    DynamoDbPeerStore,
    DynamoDbProofStore,
    SqsDeliveryChannel,
    create_client,
)
from synapsed.config import AwsConfig
from synapsed.errors import DeliveryError, StoreError
from synapsed.peers import PeerStatus
from tests.samples import NOW


def client_error(code):
    return ClientError({"Error": {"Code": code, "Message": "nope"}}, "GetItem")


class TestCreateClient:
    """Tests for boto3 client construction."""

    def test_passes_region_and_endpoint(self):
        """Region and endpoint come from the aws section."""
        with patch("synapsed.backends.aws.boto3.client") as mock_client:
            create_client("dynamodb", AwsConfig(region="eu-west-1", endpoint_url="http://localhost:4566"))

        kwargs = mock_client.call_args.kwargs
        assert kwargs["service_name"] == "dynamodb"
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["endpoint_url"] == "http://localhost:4566"

    def test_omits_unset_values(self):
        """Unset region and endpoint are left to boto3 defaults."""
        with patch("synapsed.backends.aws.boto3.client") as mock_client:
            create_client("sqs", AwsConfig())

        kwargs = mock_client.call_args.kwargs
        assert "region_name" not in kwargs
        assert "endpoint_url" not in kwargs


class TestDynamoDbProofStore:
    """Tests for DynamoDbProofStore."""

    async def test_reads_item(self):
        """expiresAt is read from a string attribute."""
        client = MagicMock()
        client.get_item.return_value = {
            "Item": {
                "did": {"S": "did:example:2"},
                "proof": {"S": "p2"},
                "expiresAt": {"S": str(NOW)},
            }
        }
        store = DynamoDbProofStore("proofs", client)

        proof = await store.get("did:example:2", "p2")

        assert proof.expires_at == NOW
        client.get_item.assert_called_once_with(
            TableName="proofs",
            Key={"did": {"S": "did:example:2"}, "proof": {"S": "p2"}},
        )

    async def test_reads_number_attribute(self):
        """expiresAt may be stored as a number."""
        client = MagicMock()
        client.get_item.return_value = {"Item": {"expiresAt": {"N": str(NOW)}}}

        proof = await DynamoDbProofStore("proofs", client).get("did", "p")

        assert proof.expires_at == NOW

    async def test_missing_item(self):
        """No Item means no proof."""
        client = MagicMock()
        client.get_item.return_value = {}

        assert await DynamoDbProofStore("proofs", client).get("did", "p") is None

    @pytest.mark.parametrize(
        "item",
        [{"did": {"S": "did"}}, {"expiresAt": {"S": "tomorrow"}}, {"expiresAt": {"BOOL": True}}],
    )
    async def test_malformed_item(self, item):
        """Unreadable items raise StoreError."""
        client = MagicMock()
        client.get_item.return_value = {"Item": item}

        with pytest.raises(StoreError):
            await DynamoDbProofStore("proofs", client).get("did", "p")

    async def test_client_error(self):
        """botocore errors become StoreError."""
        client = MagicMock()
        client.get_item.side_effect = client_error("ResourceNotFoundException")

        with pytest.raises(StoreError, match="ResourceNotFoundException"):
            await DynamoDbProofStore("proofs", client).get("did", "p")

    async def test_connection_error(self):
        """Transport errors become StoreError."""
        client = MagicMock()
        client.get_item.side_effect = EndpointConnectionError(endpoint_url="http://localhost:4566")

        with pytest.raises(StoreError):
            await DynamoDbProofStore("proofs", client).get("did", "p")


class TestDynamoDbPeerStore:
    """Tests for DynamoDbPeerStore."""

    async def test_reads_record(self):
        """Peer attributes map onto the record."""
        client = MagicMock()
        client.get_item.return_value = {
            "Item": {
                "peerId": {"S": "peer-9"},
                "connectionId": {"S": "conn-9"},
                "endpoint": {"S": "10.0.0.9"},
                "status": {"S": "connected"},
                "connectedAt": {"S": str(NOW)},
                "did": {"S": "did:example:9"},
                "ttl": {"N": "1"},
                "tags": {"SS": ["a"]},
            }
        }

        record = await DynamoDbPeerStore("peers", client).get("peer-9")

        assert record.peer_id == "peer-9"
        assert record.connection_id == "conn-9"
        assert record.status is PeerStatus.CONNECTED
        assert record.connected_at == NOW
        assert record.identity == "did:example:9"
        client.get_item.assert_called_once_with(TableName="peers", Key={"peerId": {"S": "peer-9"}})

    async def test_missing_item(self):
        """No Item means no record."""
        client = MagicMock()
        client.get_item.return_value = {}

        assert await DynamoDbPeerStore("peers", client).get("peer-9") is None

    async def test_malformed_item(self):
        """Incomplete items raise StoreError."""
        client = MagicMock()
        client.get_item.return_value = {"Item": {"peerId": {"S": "peer-9"}}}

        with pytest.raises(StoreError):
            await DynamoDbPeerStore("peers", client).get("peer-9")

    async def test_client_error(self):
        """botocore errors become StoreError."""
        client = MagicMock()
        client.get_item.side_effect = client_error("ProvisionedThroughputExceededException")

        with pytest.raises(StoreError):
            await DynamoDbPeerStore("peers", client).get("peer-9")


class TestSqsDeliveryChannel:
    """Tests for SqsDeliveryChannel."""

    async def test_submit(self):
        """The envelope is sent as the message body."""
        client = MagicMock()
        client.send_message.return_value = {"MessageId": "msg-1"}
        channel = SqsDeliveryChannel("https://sqs.example.com/queue", client)

        assert await channel.submit(b'{"type":"offer"}') == "msg-1"
        client.send_message.assert_called_once_with(
            QueueUrl="https://sqs.example.com/queue",
            MessageBody='{"type":"offer"}',
        )

    async def test_submit_error(self):
        """botocore errors become DeliveryError."""
        client = MagicMock()
        client.send_message.side_effect = client_error("AWS.SimpleQueueService.NonExistentQueue")

        with pytest.raises(DeliveryError):
            await SqsDeliveryChannel("https://sqs.example.com/queue", client).submit(b"{}")
