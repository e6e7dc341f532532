"""Object store binding.

The sync core only needs three calls against a bucket: put, delete and list.
``S3ObjectStore`` provides them on top of a boto3 S3 client so any
S3-compatible endpoint (R2, MinIO, AWS) works.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import StoreError


@dataclass(frozen=True)
class ListingPage:
    keys: Tuple[str, ...]
    next_token: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.keys

    def __len__(self) -> int:
        return len(self.keys)


class ObjectStoreClient(Protocol):
    def put(self, bucket: str, key: str, data: bytes) -> None: ...

    def delete(self, bucket: str, key: str) -> None: ...

    def list(self, bucket: str, continuation_token: Optional[str] = None) -> ListingPage: ...


def make_s3_client(
    region: Optional[str],
    profile: Optional[str],
    endpoint_url: Optional[str],
    use_path_style: bool,
    credentials: Optional[dict],
    max_pool_connections: int = 10,
):
    session_kwargs = {}
    if profile:
        session_kwargs["profile_name"] = profile
    session = boto3.session.Session(**session_kwargs)
    # One connection per worker, otherwise urllib3 discards pooled connections under load
    boto_cfg = BotoConfig(
        s3={"addressing_style": "path" if use_path_style else "virtual"},
        max_pool_connections=max(1, int(max_pool_connections)),
    )
    client_kwargs = {"region_name": region, "config": boto_cfg, "endpoint_url": endpoint_url}
    if credentials:
        client_kwargs.update(credentials)
    return session.client("s3", **{k: v for k, v in client_kwargs.items() if v is not None})


class S3ObjectStore:
    """ObjectStoreClient backed by a boto3 S3 client.

    boto3 clients are safe to share between threads, so a single instance
    serves every worker in the pool.
    """

    def __init__(self, client, page_size: Optional[int] = None) -> None:
        self._s3 = client
        self._page_size = page_size

    def put(self, bucket: str, key: str, data: bytes) -> None:
        try:
            self._s3.put_object(Bucket=bucket, Key=key, Body=data)
        except (ClientError, BotoCoreError) as e:
            raise StoreError.from_boto("put", bucket, key, e) from e

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._s3.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StoreError.from_boto("delete", bucket, key, e) from e

    def list(self, bucket: str, continuation_token: Optional[str] = None) -> ListingPage:
        kwargs = {"Bucket": bucket}
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        if self._page_size:
            kwargs["MaxKeys"] = int(self._page_size)
        try:
            resp = self._s3.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise StoreError.from_boto("list", bucket, None, e) from e

        keys = tuple(obj["Key"] for obj in resp.get("Contents", []) or [])
        next_token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return ListingPage(keys=keys, next_token=next_token)
