"""Clients for the streams wire API."""

from dynastream.clients.streams import DynamoDBStreamsClient, make_boto3_client

__all__ = [
    "DynamoDBStreamsClient",
    "make_boto3_client",
]
