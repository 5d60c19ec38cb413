"""
Object storage

Uploads audio, cover and avatar payloads to an S3 compatible bucket and
hands back the public URL and the object key.
"""

import asyncio
import mimetypes
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from audioly.core.config import settings
from audioly.core.errors import UploadError
from audioly.core.logging import get_logger

logger = get_logger(__name__)

AUDIO_FOLDER = "audioly/audio"
COVER_FOLDER = "audioly/covers"
AVATAR_FOLDER = "audioly/avatars"


@dataclass(frozen=True)
class StoredObject:
    url: str
    storage_id: str


class ObjectStorage:
    """boto3 backed storage; the client is built on first use."""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        access_key: str = "",
        secret_key: str = "",
        region: str = "us-east-1",
        public_base_url: Optional[str] = None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
        self.public_base_url = public_base_url
        self._client = None

    @classmethod
    def from_settings(cls) -> "ObjectStorage":
        return cls(
            bucket=settings.storage_bucket_name,
            endpoint_url=settings.storage_endpoint,
            access_key=settings.storage_access_key,
            secret_key=settings.storage_secret_key,
            region=settings.storage_region,
            public_base_url=settings.storage_public_base_url,
        )

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url,
                region_name=self.region,
                aws_access_key_id=self.access_key or None,
                aws_secret_access_key=self.secret_key or None,
            )
        return self._client

    def _object_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    @staticmethod
    def _build_key(folder: str, filename: Optional[str], content_type: Optional[str]) -> str:
        extension = ""
        if filename and "." in filename:
            extension = "." + filename.rsplit(".", 1)[1].lower()
        elif content_type:
            extension = mimetypes.guess_extension(content_type) or ""
        return f"{folder}/{uuid4().hex}{extension}"

    def _put(self, key: str, payload: bytes, content_type: Optional[str]) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        self.client.put_object(Bucket=self.bucket, Key=key, Body=payload, **extra)

    async def upload(
        self,
        payload: bytes,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        key = self._build_key(folder, filename, content_type)
        try:
            await asyncio.to_thread(self._put, key, payload, content_type)
        except (BotoCoreError, ClientError) as exc:
            logger.error("storage.upload_failed", folder=folder, error=str(exc))
            raise UploadError(details={"folder": folder}) from exc

        logger.info("storage.uploaded", key=key, size=len(payload))
        return StoredObject(url=self._object_url(key), storage_id=key)


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency; tests override it with an in-memory fake."""
    global _storage
    if _storage is None:
        _storage = ObjectStorage.from_settings()
    return _storage
