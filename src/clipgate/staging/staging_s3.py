"""S3 (or S3-compatible) staging store backed by boto3."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .staging_base import StagingStore

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client(
    *,
    region_name: str,
    endpoint_url: str | None = None,
    aws_access_key_id: str | None = None,
    aws_secret_access_key: str | None = None,
    timeout_seconds: float = 60.0,
    max_attempts: int = 3,
) -> Any:
    """Instantiate a boto3 S3 client using explicit credentials if available.

    Connect and read timeouts are bounded so a hung request cannot keep a
    staging worker thread alive indefinitely.
    """

    client_kwargs: dict[str, Any] = {
        "region_name": region_name,
        "config": Config(
            connect_timeout=timeout_seconds,
            read_timeout=timeout_seconds,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        ),
    }
    if endpoint_url:
        client_kwargs["endpoint_url"] = endpoint_url
    if aws_access_key_id and aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = aws_access_key_id
        client_kwargs["aws_secret_access_key"] = aws_secret_access_key
    return boto3.client("s3", **client_kwargs)


class S3StagingStore(StagingStore):
    scheme = "s3"

    def __init__(self, client: Any) -> None:
        self._client = client

    def put(self, data: bytes, bucket: str, key: str, *, content_type: str) -> None:
        self._client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)

    def exists(self, bucket: str, key: str) -> bool:
        try:
            self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise
        return True

    def get(self, bucket: str, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise FileNotFoundError(
                    f"File not found in staging store: s3://{bucket}/{key}"
                ) from exc
            raise
        return response["Body"].read()

    def delete(self, bucket: str, key: str) -> None:
        self._client.delete_object(Bucket=bucket, Key=key)

    def list_keys(self, bucket: str, prefix: str) -> list[str]:
        keys: list[str] = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            keys.extend(entry["Key"] for entry in page.get("Contents", []))
        return sorted(keys)


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


__all__ = ["S3StagingStore", "create_s3_client"]
