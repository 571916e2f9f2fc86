"""
Translate between hierarchical uris (scheme://path/to/file) and the flat keys stored in the bucket.

Everything here is pure string handling: no I/O, and no errors except for uris without a scheme.
"""

from typing import TYPE_CHECKING, Tuple

if TYPE_CHECKING:
    from bucketfs.config import Settings

SEPARATOR = "/"
SCHEME_SEPARATOR = "://"


def split_uri(uri: str) -> Tuple[str, str]:
    scheme, sep, path = uri.partition(SCHEME_SEPARATOR)
    if not sep or not scheme:
        raise ValueError(f"Invalid uri {uri!r}: expected scheme://path")
    return scheme, path


def normalize_uri(uri: str) -> str:
    """public:///foo//bar/ and public://foo/bar are the same file, so both become public://foo/bar"""
    scheme, path = split_uri(uri)
    path = SEPARATOR.join(part for part in path.split(SEPARATOR) if part)
    return f"{scheme}{SCHEME_SEPARATOR}{path}"


def is_root(uri: str) -> bool:
    return split_uri(normalize_uri(uri))[1] == ""


def dirname(uri: str) -> str:
    scheme, path = split_uri(normalize_uri(uri))
    parent = path.rsplit(SEPARATOR, 1)[0] if SEPARATOR in path else ""
    return f"{scheme}{SCHEME_SEPARATOR}{parent}"


def basename(uri: str) -> str:
    path = split_uri(normalize_uri(uri))[1]
    return path.rsplit(SEPARATOR, 1)[-1]


def directory_prefix(uri: str) -> str:
    """
    The prefix shared by all descendants of a directory: the uri with exactly one trailing separator.
    Matching on this (and not on the bare uri) keeps foo/barbell.jpg from looking like it is inside foo/bar.
    """
    uri = normalize_uri(uri)
    return uri if uri.endswith(SEPARATOR) else uri + SEPARATOR


def join_key(*parts: str) -> str:
    return SEPARATOR.join(part.strip(SEPARATOR) for part in parts if part.strip(SEPARATOR))


class PathTranslator:
    def __init__(self, settings: "Settings"):
        self.bucket = settings.bucket
        self.root_folder = settings.root_folder
        self.folders = {
            "public": settings.public_folder,
            "private": settings.private_folder,
        }

    def scheme_folder(self, scheme: str) -> str:
        """Storage folder for a scheme; schemes without one (such as s3://) live directly under the root folder."""
        return self.folders.get(scheme, "")

    def scheme_key(self, uri: str) -> str:
        scheme, path = split_uri(normalize_uri(uri))
        return join_key(self.scheme_folder(scheme), path)

    def apply_root(self, key: str) -> str:
        return join_key(self.root_folder, key)

    def to_object_key(self, uri: str, prepend_bucket: bool = False) -> str:
        key = self.apply_root(self.scheme_key(uri))
        if prepend_bucket:
            key = join_key(self.bucket, key)
        return key

    def root_prefix(self) -> str:
        return self.root_folder + SEPARATOR if self.root_folder else ""

    def to_uri(self, key: str, default_scheme: str = "s3") -> str | None:
        """
        Map a key from a bucket listing back to its uri.
        Returns None for keys outside of the root folder.
        """
        prefix = self.root_prefix()
        if not key.startswith(prefix):
            return None
        key = key[len(prefix) :].strip(SEPARATOR)
        for scheme, folder in self.folders.items():
            if folder and (key == folder or key.startswith(folder + SEPARATOR)):
                return normalize_uri(f"{scheme}{SCHEME_SEPARATOR}{key[len(folder) :]}")
        return normalize_uri(f"{default_scheme}{SCHEME_SEPARATOR}{key}")
