"""S3/MinIO blob store — opaque objects keyed by path."""

from __future__ import annotations

import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from cyberlab.core.config import settings
from cyberlab.core.errors import DependencyError, NotFoundError

logger = logging.getLogger(__name__)

_client = None


def get_s3_client():
    """Return a singleton boto3 S3 client pointed at the configured endpoint."""
    global _client
    if _client is None:
        _client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=BotoConfig(
                signature_version="s3v4",
                connect_timeout=5,
                read_timeout=10,
                retries={"max_attempts": 1},
            ),
        )
    return _client


def _unavailable(action: str, key: str, exc: Exception) -> DependencyError:
    logger.error("Blob store %s failed for %s: %s", action, key, exc)
    return DependencyError("Blob store unavailable", action=action, key=key)


def upload_bytes(key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
    """Store *data* at *key* and return the key."""
    s3 = get_s3_client()
    try:
        s3.put_object(Bucket=settings.s3_bucket, Key=key, Body=data, ContentType=content_type)
    except (ClientError, BotoCoreError) as exc:
        raise _unavailable("upload", key, exc) from exc
    return key


def download_bytes(key: str) -> bytes:
    """Download an object's full body as bytes."""
    s3 = get_s3_client()
    try:
        resp = s3.get_object(Bucket=settings.s3_bucket, Key=key)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
            raise NotFoundError("Object not found", key=key) from exc
        raise _unavailable("download", key, exc) from exc
    except BotoCoreError as exc:
        raise _unavailable("download", key, exc) from exc
    return resp["Body"].read()


def list_prefix(prefix: str) -> list[str]:
    """All keys under *prefix*, following continuation tokens."""
    s3 = get_s3_client()
    keys: list[str] = []
    try:
        paginator = s3.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=settings.s3_bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
    except (ClientError, BotoCoreError) as exc:
        raise _unavailable("list", prefix, exc) from exc
    return keys


def presigned_get_url(key: str, expires: int | None = None) -> str:
    """Generate a presigned GET URL for previewing an object."""
    s3 = get_s3_client()
    try:
        return s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.s3_bucket, "Key": key},
            ExpiresIn=expires or settings.preview_url_ttl_seconds,
        )
    except (ClientError, BotoCoreError) as exc:
        raise _unavailable("presign", key, exc) from exc


def ensure_bucket(bucket: str | None = None) -> None:
    """Create the bucket if it does not exist."""
    bucket = bucket or settings.s3_bucket
    s3 = get_s3_client()
    try:
        s3.head_bucket(Bucket=bucket)
        logger.info("Bucket '%s' already exists.", bucket)
    except ClientError:
        s3.create_bucket(Bucket=bucket)
        logger.info("Created bucket '%s'.", bucket)


def custody_report_key(exhibit_number: str, sha256: str) -> str:
    """Content-addressed key for an archived custody report."""
    safe = exhibit_number.replace("/", "-")
    return f"{settings.custody_report_prefix}{safe}/{sha256}.txt"
