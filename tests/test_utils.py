import pytest

from lakeview.exceptions import InvalidStorageUriError
from lakeview.utils import (
    Backend,
    classify_backend,
    construct_uri,
    extract_bucket,
    extract_key,
    extract_prefix,
    normalize_prefix,
)


@pytest.mark.parametrize(
    "uri,backend,bucket,prefix",
    [
        ("s3://lake1/tables/", Backend.S3, "lake1", "tables/"),
        ("s3://lake1/tables", Backend.S3, "lake1", "tables/"),
        ("s3://lake1/", Backend.S3, "lake1", ""),
        ("s3://lake1", Backend.S3, "lake1", ""),
        ("gs://bucket/a/b/c", Backend.GCS, "bucket", "a/b/c/"),
        ("gs://bucket//a/b/", Backend.GCS, "bucket", "a/b/"),
    ],
)
def test_uri_parts(uri, backend, bucket, prefix):
    assert classify_backend(uri) is backend
    assert extract_bucket(uri) == bucket
    assert extract_prefix(uri) == prefix
    assert not extract_prefix(uri).startswith("/")


@pytest.mark.parametrize(
    "uri",
    ["", "s3:///tables", "gs://", "http://bucket/key", "s3:/bucket/key", "bucket/key", None],
)
def test_invalid_uris_fail_fast(uri):
    with pytest.raises(InvalidStorageUriError):
        classify_backend(uri)
    with pytest.raises(ValueError):
        extract_bucket(uri)


def test_extract_key_keeps_object_name():
    assert extract_key("gs://bucket/missing.json") == "missing.json"
    assert extract_key("s3://lake1/tables/db1/file.parquet") == "tables/db1/file.parquet"
    assert extract_key("s3://lake1") == ""


def test_normalize_prefix():
    assert normalize_prefix(None) == ""
    assert normalize_prefix("") == ""
    assert normalize_prefix("/") == ""
    assert normalize_prefix("tables") == "tables/"
    assert normalize_prefix("/tables/") == "tables/"


def test_construct_uri_round_trips():
    uri = construct_uri(Backend.GCS, "bucket", "/tables/db1/")
    assert uri == "gs://bucket/tables/db1/"
    assert extract_bucket(uri) == "bucket"
    assert extract_prefix(uri) == "tables/db1/"
    with pytest.raises(InvalidStorageUriError):
        construct_uri(Backend.S3, "", "key")
