"""Tests for the boto3-backed object store binding."""
import boto3
import pytest
from botocore.config import Config as BotoConfig
from botocore.stub import Stubber

from bucket_cycle.errors import StoreError
from bucket_cycle.store import ListingPage, S3ObjectStore, make_s3_client


@pytest.fixture
def s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=BotoConfig(s3={"addressing_style": "path"}),
    )


@pytest.fixture
def stubber(s3):
    with Stubber(s3) as stub:
        yield stub
        stub.assert_no_pending_responses()


class TestS3ObjectStore:
    def test_put(self, s3, stubber):
        stubber.add_response("put_object", {}, {"Bucket": "bkt", "Key": "a.txt", "Body": b"hello"})
        S3ObjectStore(s3).put("bkt", "a.txt", b"hello")

    def test_delete(self, s3, stubber):
        stubber.add_response("delete_object", {}, {"Bucket": "bkt", "Key": "a.txt"})
        S3ObjectStore(s3).delete("bkt", "a.txt")

    def test_list_single_page(self, s3, stubber):
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "a"}, {"Key": "b"}], "IsTruncated": False, "KeyCount": 2},
            {"Bucket": "bkt"},
        )
        page = S3ObjectStore(s3).list("bkt")
        assert page == ListingPage(keys=("a", "b"), next_token=None)
        assert len(page) == 2

    def test_list_truncated_page_with_token(self, s3, stubber):
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "c"}], "IsTruncated": True, "NextContinuationToken": "next-2"},
            {"Bucket": "bkt", "ContinuationToken": "next-1", "MaxKeys": 1},
        )
        page = S3ObjectStore(s3, page_size=1).list("bkt", continuation_token="next-1")
        assert page.keys == ("c",)
        assert page.next_token == "next-2"

    def test_list_empty_bucket(self, s3, stubber):
        stubber.add_response("list_objects_v2", {"IsTruncated": False, "KeyCount": 0}, {"Bucket": "bkt"})
        assert S3ObjectStore(s3).list("bkt").is_empty

    def test_throttled_delete_is_retryable(self, s3, stubber):
        stubber.add_client_error("delete_object", service_error_code="SlowDown", http_status_code=503)
        with pytest.raises(StoreError) as excinfo:
            S3ObjectStore(s3).delete("bkt", "a")
        err = excinfo.value
        assert err.op == "delete"
        assert err.code == "SlowDown"
        assert err.retryable is True
        assert "s3://bkt/a" in str(err)

    def test_access_denied_is_terminal(self, s3, stubber):
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StoreError) as excinfo:
            S3ObjectStore(s3).put("bkt", "a", b"")
        assert excinfo.value.retryable is False

    def test_list_error(self, s3, stubber):
        stubber.add_client_error("list_objects_v2", service_error_code="NoSuchBucket", http_status_code=404)
        with pytest.raises(StoreError) as excinfo:
            S3ObjectStore(s3).list("missing")
        assert excinfo.value.key is None
        assert excinfo.value.code == "NoSuchBucket"


def test_make_s3_client_applies_endpoint_and_pool():
    client = make_s3_client(
        region="auto",
        profile=None,
        endpoint_url="https://acct.r2.cloudflarestorage.com",
        use_path_style=True,
        credentials={"aws_access_key_id": "k", "aws_secret_access_key": "s"},
        max_pool_connections=64,
    )
    assert client.meta.endpoint_url == "https://acct.r2.cloudflarestorage.com"
    assert client.meta.config.max_pool_connections == 64
    assert client.meta.config.s3["addressing_style"] == "path"
