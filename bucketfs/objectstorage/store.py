from typing import AsyncIterator, Protocol

from bucketfs.models import ObjectHead


class ObjectStore(Protocol):
    """
    What bucketfs needs from a bucket. Keys are full object keys (root folder included).

    Missing objects are reported as None; anything else that goes wrong
    is raised as an ObjectStoreError.
    """

    async def head_object(self, key: str) -> ObjectHead | None: ...

    async def object_url(self, key: str) -> str: ...

    async def presigned_get(self, key: str, expires_in: int, **response_args: str) -> str: ...

    async def get_object(self, key: str) -> bytes | None: ...

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        acl: str | None = None,
        cache_control: str | None = None,
        encryption: str | None = None,
    ) -> None: ...

    async def copy_object(
        self,
        source_key: str,
        key: str,
        acl: str | None = None,
        encryption: str | None = None,
    ) -> None: ...

    async def delete_object(self, key: str) -> None: ...

    def list_objects(self, prefix: str = "") -> AsyncIterator[ObjectHead]: ...
