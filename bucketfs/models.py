import stat
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self, TypedDict

from bucketfs.paths import normalize_uri

# No real permission model behind the bucket, so everything is rwx for everyone
FULL_PERMISSIONS = 0o777


class FileMetadata(BaseModel):
    """One entry of the metadata cache: a file or a (synthetic) directory."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    uri: str
    filesize: int = Field(default=0, ge=0)
    timestamp: int = Field(default_factory=lambda: int(time.time()))
    is_directory: bool = False
    version: str | None = None

    @field_validator("uri")
    @classmethod
    def normalize(cls, uri: str) -> str:
        return normalize_uri(uri)

    @model_validator(mode="after")
    def directories_are_empty(self) -> Self:
        if self.is_directory and self.filesize:
            raise ValueError(f"Directory {self.uri} cannot have a filesize")
        return self

    @classmethod
    def directory(cls, uri: str, timestamp: int | None = None) -> "FileMetadata":
        if timestamp is None:
            return cls(uri=uri, is_directory=True)
        return cls(uri=uri, is_directory=True, timestamp=timestamp)


class PosixStat(NamedTuple):
    st_dev: int
    st_ino: int
    st_mode: int
    st_nlink: int
    st_uid: int
    st_gid: int
    st_rdev: int
    st_size: int
    st_atime: int
    st_mtime: int
    st_ctime: int
    st_blksize: int
    st_blocks: int

    @classmethod
    def from_metadata(cls, metadata: FileMetadata) -> "PosixStat":
        if metadata.is_directory:
            mode, size = stat.S_IFDIR | FULL_PERMISSIONS, 0
        else:
            mode, size = stat.S_IFREG | FULL_PERMISSIONS, metadata.filesize
        t = metadata.timestamp
        return cls(0, 0, mode, 1, 0, 0, 0, size, t, t, t, 0, 0)


class ObjectHead(TypedDict):
    key: str
    is_dir: bool
    size: int
    last_modified: datetime | None
    version_id: str | None


@dataclass
class UrlSettings:
    """Everything that decides how a single key is linked; hooks may change any of it."""

    key: str
    presigned: bool = False
    timeout: int = 0
    forced_download: bool = False
    api_args: dict[str, str] = field(default_factory=dict)
    custom_args: dict[str, str] = field(default_factory=dict)
