"""
Managed NoSQL connector for AWS DynamoDB.

The native handle is a boto3 DynamoDB client. A custom ``endpoint`` points
the client at a local emulator (DynamoDB Local, LocalStack). When a ``table``
is configured the connector provisions it on first connect: the table is
described, and created with a hash key and one global secondary index if it
does not exist yet.
"""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from .base import BackendKind, BaseConnector

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


class DynamoDBConnector(BaseConnector[Any]):
    """
    DynamoDB connector.

    Configuration keys (defaults in brackets):
    - region ["us-east-1"], endpoint
    - key / secret: static credentials, otherwise the default AWS chain
    - table: table to provision on first connect
    - partition_key ["id"], index_key ["category"], index_name ["<IndexKey>Index"]
    - read_capacity [5], write_capacity [5]
    - timeout: connect and read timeout in seconds [10]
    """

    kind = BackendKind.DYNAMODB

    def __init__(self, config, name):
        super().__init__(config, name)
        self._provisioned = False

    @property
    def table_name(self) -> Optional[str]:
        return self._get("table", "table_name")

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for boto3.client('dynamodb', ...)."""
        timeout = float(self._get("timeout", default=10.0))
        kwargs: Dict[str, Any] = {
            "region_name": self._get("region", default=DEFAULT_REGION),
            "config": BotoConfig(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        }

        endpoint = self._get("endpoint", "endpoint_url")
        if endpoint:
            kwargs["endpoint_url"] = endpoint

        key = self._get("key", "aws_access_key_id")
        secret = self._get("secret", "aws_secret_access_key")
        if key and secret:
            kwargs["aws_access_key_id"] = key
            kwargs["aws_secret_access_key"] = secret
            token = self._get("token", "aws_session_token")
            if token:
                kwargs["aws_session_token"] = token

        return kwargs

    def table_definition(self) -> Dict[str, Any]:
        """
        CreateTable request for the configured table.

        Returns:
            Dict[str, Any]: Parameters for client.create_table()
        """
        partition_key = self._get("partition_key", default="id")
        index_key = self._get("index_key", default="category")
        index_name = self._get("index_name", default=f"{index_key[:1].upper()}{index_key[1:]}Index")
        throughput = {
            "ReadCapacityUnits": int(self._get("read_capacity", default=5)),
            "WriteCapacityUnits": int(self._get("write_capacity", default=5)),
        }

        return {
            "TableName": self.table_name,
            "KeySchema": [{"AttributeName": partition_key, "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": partition_key, "AttributeType": "S"},
                {"AttributeName": index_key, "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                {
                    "IndexName": index_name,
                    "KeySchema": [{"AttributeName": index_key, "KeyType": "HASH"}],
                    "Projection": {"ProjectionType": "ALL"},
                    "ProvisionedThroughput": dict(throughput),
                }
            ],
            "ProvisionedThroughput": throughput,
        }

    def ensure_table(self, client: Any) -> bool:
        """
        Create the configured table unless it already exists.

        Blocks until a newly created table is ACTIVE.

        Returns:
            True if the table was created, False if it already existed

        Raises:
            ClientError: For any DescribeTable failure other than a missing table
        """
        table = self.table_name
        try:
            client.describe_table(TableName=table)
            return False
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                raise

        logger.info(f"Creating DynamoDB table '{table}' for connection '{self.name}'")
        client.create_table(**self.table_definition())
        client.get_waiter("table_exists").wait(TableName=table)
        logger.info(f"DynamoDB table '{table}' is active")
        return True

    def describe(self) -> Dict[str, Any]:
        info = super().describe()
        info["table"] = self.table_name
        info["provisioned"] = self._provisioned
        return info

    def _open(self) -> Any:
        client = boto3.client("dynamodb", **self.client_kwargs())
        try:
            if self.table_name and not self._provisioned:
                self.ensure_table(client)
                self._provisioned = True
            else:
                self._probe(client)
        except Exception:
            client.close()
            raise
        return client

    def _probe(self, handle: Any) -> None:
        handle.list_tables(Limit=1)

    def _close(self, handle: Any) -> None:
        handle.close()


__all__ = ["DynamoDBConnector"]
