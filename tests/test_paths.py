import pytest

from bucketfs.paths import (
    PathTranslator,
    basename,
    directory_prefix,
    dirname,
    is_root,
    normalize_uri,
    split_uri,
)


def test_normalize_uri():
    assert normalize_uri("public:///foo//bar/") == "public://foo/bar"
    assert normalize_uri("public://foo/bar") == "public://foo/bar"
    assert normalize_uri("public://") == "public://"
    assert normalize_uri("public:////") == "public://"


def test_uri_needs_scheme():
    with pytest.raises(ValueError):
        split_uri("foo/bar.txt")
    with pytest.raises(ValueError):
        normalize_uri("://foo")


def test_dirname_and_basename():
    assert dirname("public://a/b/c.txt") == "public://a/b"
    assert dirname("public://a") == "public://"
    # the parent of the root is the root, never "."
    assert dirname("public://") == "public://"
    assert basename("public://a/b/c.txt") == "c.txt"
    assert is_root("s3://")
    assert not is_root("s3://a")


def test_directory_prefix():
    assert directory_prefix("public://foo/bar") == "public://foo/bar/"
    assert directory_prefix("public://foo/bar/") == "public://foo/bar/"
    assert directory_prefix("public://") == "public://"
    assert not "public://foo/barbell.jpg".startswith(directory_prefix("public://foo/bar"))


def test_object_keys(make_settings):
    translator = PathTranslator(make_settings())
    assert translator.to_object_key("public://img/logo.png") == "s3fs-public/img/logo.png"
    assert translator.to_object_key("private://doc.pdf") == "s3fs-private/doc.pdf"
    assert translator.to_object_key("s3://raw/data.csv") == "raw/data.csv"
    assert translator.to_object_key("public://a.png", prepend_bucket=True) == "test-bucket/s3fs-public/a.png"


def test_object_keys_with_root_folder(make_settings):
    translator = PathTranslator(make_settings(root_folder="/site/", public_folder="files"))
    assert translator.scheme_key("public://a.png") == "files/a.png"
    assert translator.to_object_key("public://a.png") == "site/files/a.png"
    assert translator.to_object_key("s3://a.png", prepend_bucket=True) == "test-bucket/site/a.png"


def test_keys_to_uris(make_settings):
    translator = PathTranslator(make_settings(root_folder="site"))
    assert translator.to_uri("site/s3fs-public/img/logo.png") == "public://img/logo.png"
    assert translator.to_uri("site/s3fs-private/doc.pdf") == "private://doc.pdf"
    assert translator.to_uri("site/s3fs-publicity/x.txt") == "s3://s3fs-publicity/x.txt"
    assert translator.to_uri("site/raw/data.csv") == "s3://raw/data.csv"
    assert translator.to_uri("elsewhere/data.csv") is None
