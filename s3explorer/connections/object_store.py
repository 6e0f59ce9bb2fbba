"""
Object storage adapter.

The registry only needs one capability from the storage SDK: a connectivity
probe that lists buckets with a given set of credentials. ``ObjectStore``
is that seam; ``Boto3ObjectStore`` implements it for any S3-compatible
service (AWS S3, MinIO, Ceph, R2 ...).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from s3explorer.core.errors import ConnectionTestError
from s3explorer.security.constants import DEFAULT_REGION

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Decrypted connection parameters. Lives only in memory."""

    endpoint: str
    access_key: str
    secret_key: str
    region: str = DEFAULT_REGION
    force_path_style: bool = True

    def __repr__(self) -> str:
        """Safe representation without credentials."""
        return (
            f"ConnectionConfig(endpoint={self.endpoint!r}, region={self.region!r}, "
            f"force_path_style={self.force_path_style})"
        )


class ObjectStore(ABC):
    """Connectivity probe against an S3-compatible service."""

    @abstractmethod
    def list_buckets(self, config: ConnectionConfig) -> list[str]:
        """
        Return bucket names visible with ``config``.

        Raises:
            ConnectionTestError: If the service cannot be reached or rejects the credentials
        """


class Boto3ObjectStore(ObjectStore):
    """ObjectStore backed by a short-lived boto3 S3 client per probe."""

    def __init__(self, connect_timeout: float = 5.0, read_timeout: float = 10.0) -> None:
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout

    def _client(self, config: ConnectionConfig):
        return boto3.client(
            "s3",
            endpoint_url=config.endpoint,
            region_name=config.region,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            config=Config(
                s3={"addressing_style": "path" if config.force_path_style else "virtual"},
                connect_timeout=self._connect_timeout,
                read_timeout=self._read_timeout,
                retries={"max_attempts": 1},
            ),
        )

    def list_buckets(self, config: ConnectionConfig) -> list[str]:
        try:
            response = self._client(config).list_buckets()
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "Unknown")
            raise ConnectionTestError(f"Connection failed: {code}") from exc
        except (BotoCoreError, ValueError) as exc:
            raise ConnectionTestError(f"Connection failed: {exc}") from exc

        return [bucket["Name"] for bucket in response.get("Buckets", [])]
