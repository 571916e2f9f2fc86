"""
Interact with S3-compatible object storage (e.g., AWS S3, MinIO, SeaweedFS, Cloudflare R2).
"""

from contextlib import contextmanager
from typing import Any, AsyncIterator, Iterator
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError
from types_aiobotocore_s3.client import S3Client

from bucketfs.errors import ObjectStoreError
from bucketfs.models import ObjectHead

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(e: ClientError) -> bool:
    error = e.response.get("Error", {})
    return error.get("Code") in NOT_FOUND_CODES


@contextmanager
def s3_errors(action: str, key: str | None = None) -> Iterator[None]:
    try:
        yield
    except (ClientError, BotoCoreError) as e:
        raise ObjectStoreError(f"Could not {action}: {e}", key=key) from e


def _upload_params(
    acl: str | None = None, cache_control: str | None = None, encryption: str | None = None
) -> dict[str, str]:
    params = {"ACL": acl, "CacheControl": cache_control, "ServerSideEncryption": encryption}
    return {k: v for k, v in params.items() if v}


class S3ObjectStore:
    def __init__(self, client: S3Client, bucket: str):
        self.client = client
        self.bucket = bucket

    async def head_object(self, key: str) -> ObjectHead | None:
        with s3_errors("head object", key):
            try:
                res = await self.client.head_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if _is_not_found(e):
                    return None
                raise
        return ObjectHead(
            key=key,
            is_dir=key.endswith("/"),
            size=res.get("ContentLength", 0),
            last_modified=res.get("LastModified"),
            version_id=res.get("VersionId"),
        )

    async def object_url(self, key: str) -> str:
        endpoint = self.client.meta.endpoint_url.rstrip("/")
        return f"{endpoint}/{self.bucket}/{quote(key)}"

    async def presigned_get(self, key: str, expires_in: int, **response_args: str) -> str:
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": key, **response_args}
        with s3_errors("presign object", key):
            return await self.client.generate_presigned_url("get_object", Params=params, ExpiresIn=expires_in)

    async def get_object(self, key: str) -> bytes | None:
        with s3_errors("get object", key):
            try:
                res = await self.client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if _is_not_found(e):
                    return None
                raise
            async with res["Body"] as stream:
                return await stream.read()

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        acl: str | None = None,
        cache_control: str | None = None,
        encryption: str | None = None,
    ) -> None:
        params = _upload_params(acl, cache_control, encryption)
        if content_type:
            params["ContentType"] = content_type
        with s3_errors("put object", key):
            await self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **params)  # type: ignore

    async def copy_object(
        self,
        source_key: str,
        key: str,
        acl: str | None = None,
        encryption: str | None = None,
    ) -> None:
        # Content type and cache headers travel along with the copy
        params = _upload_params(acl=acl, encryption=encryption)
        with s3_errors("copy object", key):
            await self.client.copy_object(
                Bucket=self.bucket,
                Key=key,
                CopySource={"Bucket": self.bucket, "Key": source_key},
                **params,  # type: ignore
            )

    async def delete_object(self, key: str) -> None:
        with s3_errors("delete object", key):
            await self.client.delete_object(Bucket=self.bucket, Key=key)

    async def list_objects(self, prefix: str = "", page_size: int = 1000) -> AsyncIterator[ObjectHead]:
        paginator = self.client.get_paginator("list_objects_v2")
        with s3_errors("list objects", prefix):
            async for page in paginator.paginate(
                Bucket=self.bucket, Prefix=prefix, PaginationConfig={"PageSize": page_size}
            ):
                for content in page.get("Contents", []):
                    if "Key" in content:
                        yield ObjectHead(
                            key=content["Key"],
                            is_dir=content["Key"].endswith("/"),
                            size=content.get("Size", 0),
                            last_modified=content.get("LastModified"),
                            version_id=None,
                        )
