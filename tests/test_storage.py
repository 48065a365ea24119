"""Local bucket storage and its signed download URLs."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from errors import StorageError
from storage import LocalBucketStorage


@pytest.fixture
def bucket(tmp_path):
    return LocalBucketStorage(str(tmp_path), "secret")


def test_upload_keeps_extension_and_content(bucket):
    path = bucket.upload(b"data", "Quote.XLSX")
    assert path.endswith(".xlsx")
    assert bucket.download(path) == b"data"
    assert bucket.upload(b"other", "Quote.XLSX") != path


def test_remove_skips_missing(bucket):
    path = bucket.upload(b"x", "a.txt")
    assert bucket.remove([path, "missing.txt"]) == [path]
    with pytest.raises(StorageError):
        bucket.download(path)


@pytest.mark.parametrize("path", ["../secret", "a/b.txt", "", ".."])
def test_paths_cannot_escape_the_bucket(bucket, path):
    with pytest.raises(StorageError):
        bucket.download(path)


def _params(url):
    q = parse_qs(urlparse(url).query)
    return q["path"][0], q["expires"][0], q["signature"][0]


def test_signed_url_valid_for_sixty_seconds(bucket):
    path = bucket.upload(b"x", "a.txt")
    url = bucket.create_signed_url(path, now=1000)
    p, expires, sig = _params(url)
    assert expires == "1060"
    assert bucket.verify_signed_url(p, expires, sig, now=1059)
    assert not bucket.verify_signed_url(p, expires, sig, now=1061)


def test_signature_bound_to_path_and_secret(bucket, tmp_path):
    a = bucket.upload(b"x", "a.txt")
    b = bucket.upload(b"y", "b.txt")
    _, expires, sig = _params(bucket.create_signed_url(a, now=0))
    assert not bucket.verify_signed_url(b, expires, sig, now=0)
    other = LocalBucketStorage(str(tmp_path), "another")
    assert not other.verify_signed_url(a, expires, sig, now=0)
    assert not bucket.verify_signed_url(a, "soon", sig, now=0)


def test_empty_secret_rejected(tmp_path):
    with pytest.raises(ValueError):
        LocalBucketStorage(str(tmp_path), "")
