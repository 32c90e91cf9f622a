import logging
import os
import pathlib
import secrets
import time
from typing import BinaryIO, Optional, Protocol

import boto3
from fastapi import UploadFile

from .config import Settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
MAX_SIZE = 5 * 1024 * 1024  # 5 MiB


class ObjectStore(Protocol):
    def put(self, key: str, fileobj: BinaryIO, content_type: str) -> None: ...


class S3ObjectStore:
    """Writes objects to an S3-compatible bucket (AWS S3, Cloudflare R2, MinIO...)."""

    def __init__(self, bucket: str, client):
        self.bucket = bucket
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["S3ObjectStore"]:
        if not settings.s3_bucket:
            return None
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
        )
        return cls(settings.s3_bucket, client)

    def put(self, key: str, fileobj: BinaryIO, content_type: str) -> None:
        self.client.upload_fileobj(fileobj, self.bucket, key, ExtraArgs={"ContentType": content_type})


def make_object_key(filename: Optional[str]) -> str:
    ext = pathlib.Path(filename or "").suffix.lower().lstrip(".") or "bin"
    return f"{int(time.time() * 1000)}-{secrets.token_hex(8)}.{ext}"


def _size_of(fileobj: BinaryIO) -> int:
    fileobj.seek(0, os.SEEK_END)
    size = fileobj.tell()
    fileobj.seek(0)
    return size


class UploadHandler:
    def __init__(self, store: Optional[ObjectStore], public_base_url: str):
        self.store = store
        self.public_base_url = public_base_url.rstrip("/")

    def handle(self, file: Optional[UploadFile]) -> str:
        """Validate an uploaded image, store it and return its public URL."""
        if file is None or not file.filename:
            raise ValidationError("No image file provided")
        if file.content_type not in ALLOWED_TYPES:
            raise ValidationError("Only JPEG, PNG, GIF, and WebP images are allowed")
        size = _size_of(file.file)
        if size > MAX_SIZE:
            raise ValidationError("File too large (max 5MB)")
        if self.store is None:
            raise RuntimeError("Object storage is not configured")

        key = make_object_key(file.filename)
        self.store.put(key, file.file, file.content_type)
        logger.info(f"Stored upload {key} ({size} bytes)")
        return f"{self.public_base_url}/{key}"
