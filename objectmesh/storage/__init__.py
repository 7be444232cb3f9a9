"""
Storage module: object client protocols and implementations.

- protocols: ObjectClient contract, ObjectStat, UploadedPart
- memory: InMemoryObjectStore (tests, local use)
- s3_store: S3ObjectStore on aioboto3
"""

from objectmesh.storage.protocols import ObjectClient, ObjectStat, UploadedPart
from objectmesh.storage.memory import InMemoryObjectStore
from objectmesh.storage.config import S3Config
from objectmesh.storage.s3_store import S3ObjectStore

__all__ = [
    "ObjectClient",
    "ObjectStat",
    "UploadedPart",
    "InMemoryObjectStore",
    "S3Config",
    "S3ObjectStore",
]
