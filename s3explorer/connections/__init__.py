"""
Connections module - Encrypted connection profiles and the object storage probe.
"""

from s3explorer.connections.object_store import Boto3ObjectStore, ConnectionConfig, ObjectStore
from s3explorer.connections.store import ConnectionProfile, ConnectionStore, SaveResult

__all__ = [
    "ConnectionConfig",
    "ObjectStore",
    "Boto3ObjectStore",
    "ConnectionProfile",
    "ConnectionStore",
    "SaveResult",
]
