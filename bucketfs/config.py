"""
bucketfs Configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the BUCKETFS_ENV_FILE environment variable

A Settings instance is frozen: build one, then hand it to the components that need it.
"""

import functools
import re
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ENV_PREFIX = "bucketfs_"

DEFAULT_PRESIGNED_TIMEOUT = 60


class PresignedRule(BaseModel):
    """A key pattern for which links are presigned, with the number of seconds the link stays valid."""

    pattern: re.Pattern
    timeout: int | None = None


def _lines(value: str) -> list[str]:
    return [line.strip() for line in value.splitlines() if line.strip()]


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    bucket: Annotated[str, Field(description="Name of the bucket that holds all files")] = "bucketfs"
    region: Annotated[str | None, Field(description="Region of the bucket")] = None
    s3_host: Annotated[str | None, Field(description="S3-compatible object storage host (endpoint url)")] = None
    s3_access_key: Annotated[str | None, Field(description="S3 access key")] = None
    s3_secret_key: Annotated[str | None, Field(description="S3 secret key")] = None

    database_url: Annotated[
        str,
        Field(description="SQLAlchemy (asyncio) url of the database that holds the file metadata table"),
    ] = "sqlite+aiosqlite:///bucketfs.db"

    public_folder: Annotated[str, Field(description="Folder in the bucket for public:// files")] = "s3fs-public"
    private_folder: Annotated[str, Field(description="Folder in the bucket for private:// files")] = "s3fs-private"
    root_folder: Annotated[
        str,
        Field(description="Folder in the bucket that contains all other folders (empty for the bucket root)"),
    ] = ""

    ignore_cache: Annotated[
        bool,
        Field(description="Ask the bucket for file metadata instead of trusting the metadata cache"),
    ] = False

    use_cname: Annotated[bool, Field(description="Serve files from a CDN or custom domain instead of S3")] = False
    domain: Annotated[str, Field(description="CDN or custom domain (only used if use_cname is set)")] = ""
    use_https: Annotated[bool, Field(description="Use https for links on the custom domain")] = True

    no_rewrite_cssjs: Annotated[
        bool,
        Field(description="Link public CSS and JS files directly instead of through the css/js proxy routes"),
    ] = False

    presigned_urls: Annotated[
        list[PresignedRule],
        NoDecode,
        Field(
            description=(
                "Keys that get presigned links, one 'timeout|pattern' or 'pattern' per line. "
                "Patterns are regular expressions searched anywhere in the key"
            )
        ),
    ] = []
    presigned_default_timeout: Annotated[
        int,
        Field(description="Seconds a presigned link stays valid if its rule does not say"),
    ] = DEFAULT_PRESIGNED_TIMEOUT
    saveas: Annotated[
        list[re.Pattern],
        NoDecode,
        Field(description="Key patterns (one per line) that are linked as forced downloads"),
    ] = []
    torrents: Annotated[
        list[re.Pattern],
        NoDecode,
        Field(description="Key patterns (one per line) that are linked as torrents"),
    ] = []
    response_args_expiry: Annotated[
        int,
        Field(description="Seconds a signed link stays valid if it is only signed to carry response overrides"),
    ] = 7 * 24 * 3600

    cache_control_header: Annotated[
        str | None,
        Field(description="Cache-Control header to set on uploaded files"),
    ] = None
    encryption: Annotated[
        str | None,
        Field(description="Server side encryption for uploaded files (e.g. AES256 or aws:kms)"),
    ] = None

    wait_attempts: Annotated[
        int,
        Field(description="How often to check whether an upload is visible in the bucket before giving up"),
    ] = 10
    wait_interval: Annotated[float, Field(description="Seconds between those checks")] = 1.0

    cache_ttl: Annotated[float, Field(description="Seconds a metadata lookup is kept in memory")] = 60.0
    cache_maxsize: Annotated[int, Field(description="Maximum number of metadata lookups kept in memory")] = 10000
    cache_prefix: Annotated[str, Field(description="Namespace for in-memory metadata cache ids")] = "bucketfs:uri:"
    lock_timeout: Annotated[
        float,
        Field(description="Seconds to wait for another reader of the same key before reading the database directly"),
    ] = 10.0

    base_url: Annotated[str, Field(description="Base url of the hosting application (empty for relative links)")] = ""
    private_route: Annotated[str, Field(description="Route that serves private:// files")] = "/system/files"
    styles_route: Annotated[str, Field(description="Route that generates missing image styles")] = "/s3/files/styles"
    css_route: Annotated[str, Field(description="Proxy route for public CSS files")] = "/s3fs-css"
    js_route: Annotated[str, Field(description="Proxy route for public JS files")] = "/s3fs-js"
    version_query_arg: Annotated[
        str,
        Field(description="Query argument that carries the file version in links"),
    ] = "v"

    @field_validator("presigned_urls", mode="before")
    @classmethod
    def parse_presigned_urls(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = _lines(value)
        rules = []
        for item in value:
            if isinstance(item, str):
                timeout, sep, pattern = item.partition("|")
                if sep and timeout.strip().isdigit():
                    item = dict(pattern=pattern.strip(), timeout=int(timeout))
                else:
                    item = dict(pattern=item)
            rules.append(item)
        return rules

    @field_validator("saveas", "torrents", mode="before")
    @classmethod
    def parse_patterns(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _lines(value)
        return value

    @field_validator("public_folder", "private_folder", "root_folder")
    @classmethod
    def strip_slashes(cls, value: str) -> str:
        return value.strip("/")

    @model_validator(mode="after")
    def check_domain(self) -> "Settings":
        if self.use_cname and not self.domain:
            raise ValueError("use_cname is set, but no domain was given")
        return self

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, frozen=True)


@functools.lru_cache()
def get_settings() -> Settings:
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump(mode="json").items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
