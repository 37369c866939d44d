"""Tests for the local content-addressed blob store."""

import hashlib
import os

import pytest

from sharevault.core.errors import BlobNotFound
from sharevault.storage.blob_store import LocalBlobStore


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(str(tmp_path / 'blobs'))


def test_put_is_content_addressed(store):
    path = store.put(b'hello')
    digest = hashlib.sha256(b'hello').hexdigest()
    assert path == os.path.join(digest[:2], digest)
    assert store.get(path) == b'hello'


def test_same_content_same_path(store):
    assert store.put(b'dup') == store.put(b'dup')


def test_no_temp_files_left_behind(store):
    path = store.put(b'payload')
    directory = os.path.dirname(os.path.join(store.root, path))
    assert os.listdir(directory) == [os.path.basename(path)]


def test_missing_blob(store):
    with pytest.raises(BlobNotFound):
        store.get('ab/' + 'a' * 64)


def test_path_outside_root_is_not_found(store, tmp_path):
    (tmp_path / 'secret.txt').write_bytes(b'secret')
    with pytest.raises(BlobNotFound):
        store.get('../secret.txt')
