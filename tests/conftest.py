import io
import threading
from typing import Optional

import pytest

from bucket_cycle.console import ConsoleReporter
from bucket_cycle.errors import StoreError
from bucket_cycle.store import ListingPage


class FakeStore:
    """In-memory object store that counts every call.

    Listings are served in sorted key order, ``page_size`` keys at a time,
    with the offset of the next page as continuation token.
    """

    def __init__(self, objects=(), page_size: Optional[int] = None, fail_put_call=None, fail_delete_call=None):
        self.objects = {key: b"" for key in objects}
        self.page_size = page_size
        self.fail_put_call = fail_put_call
        self.fail_delete_call = fail_delete_call
        self.put_calls = 0
        self.delete_calls = 0
        self.list_calls = 0
        self.put_keys = []
        self.deleted_keys = []
        self._lock = threading.Lock()

    def put(self, bucket, key, data):
        with self._lock:
            self.put_calls += 1
            if self.put_calls == self.fail_put_call:
                raise StoreError("put", bucket, key, "InternalError", "boom", retryable=True)
            self.objects[key] = data
            self.put_keys.append(key)

    def delete(self, bucket, key):
        with self._lock:
            self.delete_calls += 1
            if self.delete_calls == self.fail_delete_call:
                raise StoreError("delete", bucket, key, "AccessDenied", "denied")
            self.objects.pop(key, None)
            self.deleted_keys.append(key)

    def list(self, bucket, continuation_token=None):
        with self._lock:
            self.list_calls += 1
            keys = sorted(self.objects)
            start = int(continuation_token or 0)
            size = self.page_size or len(keys)
            page = keys[start : start + size]
            more = start + size < len(keys)
            return ListingPage(keys=tuple(page), next_token=str(start + size) if more else None)


class BlockingStore(FakeStore):
    """Store whose puts park until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def put(self, bucket, key, data):
        self.entered.set()
        assert self.release.wait(timeout=10)
        super().put(bucket, key, data)


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def reporter(out):
    return ConsoleReporter(out=out, err=io.StringIO())


@pytest.fixture
def sample_tree(tmp_path):
    root = tmp_path / "sample"
    (root / "a").mkdir(parents=True)
    (root / "b" / "deep").mkdir(parents=True)
    (root / "one.txt").write_bytes(b"1")
    (root / "a" / "two.txt").write_bytes(b"22")
    (root / "b" / "deep" / "three.bin").write_bytes(b"\x00\x01\x02")
    return root
