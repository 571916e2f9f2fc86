"""
Decide which URL the outside world gets for a file.

In order:
- private:// files are linked through the hosting application, which checks access and redirects
- missing image styles are linked to the route that generates them
- public CSS and JS are linked through proxy routes (browsers refuse some cross-origin assets)
- everything else is linked to the bucket (or the CDN in front of it), presigned, as a forced
  download or as a torrent depending on the configured key patterns
"""

import re
from typing import Callable, Iterable, Sequence
from urllib.parse import quote, urlencode

from bucketfs.config import Settings
from bucketfs.models import FileMetadata, UrlSettings
from bucketfs.objectstorage.store import ObjectStore
from bucketfs.oracle import StatOracle
from bucketfs.paths import PathTranslator, basename, normalize_uri, split_uri

STYLES_PREFIX = "styles/"

# Hooks get the url settings and the uri, and may change the settings in place
UrlHook = Callable[[UrlSettings, str], None]


def append_query(url: str, args: dict[str, str] | str) -> str:
    if not args:
        return url
    query = args if isinstance(args, str) else urlencode(args)
    return f"{url}{'&' if '?' in url else '?'}{query}"


def _matches(patterns: Iterable[re.Pattern], key: str) -> bool:
    return any(pattern.search(key) for pattern in patterns)


class UrlPolicy:
    def __init__(
        self,
        settings: Settings,
        translator: PathTranslator,
        oracle: StatOracle,
        store: ObjectStore,
        hooks: Sequence[UrlHook] = (),
    ):
        self.settings = settings
        self.translator = translator
        self.oracle = oracle
        self.store = store
        self.hooks = list(hooks)

    def route(self, route: str, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{route.rstrip('/')}/{quote(path)}"

    async def external_url(self, uri: str, custom_args: dict[str, str] | None = None) -> str:
        uri = normalize_uri(uri)
        scheme, path = split_uri(uri)

        if scheme == "private":
            return self.route(self.settings.private_route, path)

        metadata: FileMetadata | None = None
        if path.startswith(STYLES_PREFIX) and not path.endswith(".css"):
            metadata = await self.oracle.resolve(uri)
            if metadata is None:
                return self.route(self.settings.styles_route, path[len(STYLES_PREFIX) :])

        if scheme == "public" and not self.settings.no_rewrite_cssjs:
            if path.endswith(".css"):
                return self.route(self.settings.css_route, path)
            if path.endswith(".js"):
                return self.route(self.settings.js_route, path)

        url_settings = self.url_settings(uri, custom_args)
        for hook in self.hooks:
            hook(url_settings, uri)
        key = self.translator.apply_root(url_settings.key)

        url = await self._object_url(key, url_settings)

        if metadata is None:
            metadata = await self.oracle.resolve(uri)
        if metadata is not None and metadata.version:
            url = append_query(url, {self.settings.version_query_arg: metadata.version})

        # Torrents only work for public, unsigned objects
        if not (url_settings.presigned or url_settings.forced_download):
            if _matches(self.settings.torrents, url_settings.key):
                url = append_query(url, "torrent")

        return append_query(url, url_settings.custom_args)

    def url_settings(self, uri: str, custom_args: dict[str, str] | None = None) -> UrlSettings:
        """Settings for the object key of uri (scheme folder applied, root folder not yet)"""
        key = self.translator.scheme_key(uri)
        url_settings = UrlSettings(key=key, custom_args=dict(custom_args or {}))

        for rule in self.settings.presigned_urls:
            if rule.pattern.search(key):
                url_settings.presigned = True
                url_settings.timeout = rule.timeout or self.settings.presigned_default_timeout
                break

        if _matches(self.settings.saveas, key):
            url_settings.forced_download = True
            url_settings.api_args["ResponseContentDisposition"] = f'attachment; filename="{basename(uri)}"'

        return url_settings

    async def _object_url(self, key: str, url_settings: UrlSettings) -> str:
        if self.settings.use_cname:
            scheme = "https" if self.settings.use_https else "http"
            return f"{scheme}://{self.settings.domain.strip('/')}/{quote(key)}"

        if url_settings.presigned or url_settings.api_args:
            # Only signed requests can carry response overrides, so sign those too (for a long time)
            if url_settings.presigned:
                expires = url_settings.timeout
            else:
                expires = self.settings.response_args_expiry
            return await self.store.presigned_get(key, expires, **url_settings.api_args)
        return await self.store.object_url(key)

    async def signed_url(self, uri: str, expires_in: int | None = None) -> str:
        """A presigned link straight to the object, for callers that did their own access checks"""
        key = self.translator.to_object_key(uri)
        return await self.store.presigned_get(key, expires_in or self.settings.presigned_default_timeout)
