from pathlib import Path
from typing import Dict, List, Optional

import boto3
import pytest
from botocore.exceptions import ClientError

from s3_publish.logs import ProgressLog
from s3_publish.options import Invocation


def client_error(code: str, message: str = "boom", operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeS3:
    """In-memory bucket speaking the subset of the S3 client API the publisher uses."""

    def __init__(self, objects: Optional[Dict[str, bytes]] = None):
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.puts: List[dict] = []
        self.list_calls: List[dict] = []
        self.delete_calls: List[dict] = []
        self.put_errors: Dict[str, Exception] = {}
        self.list_error: Optional[Exception] = None
        self.fail_list_on_call: Optional[int] = None
        self.delete_error: Optional[Exception] = None

    def put_object(self, **kwargs):
        self.puts.append(kwargs)
        err = self.put_errors.get(kwargs["Key"])
        if err is not None:
            raise err
        self.objects[kwargs["Key"]] = kwargs["Body"]
        return {"ETag": '"etag"'}

    def list_objects_v2(self, **kwargs):
        self.list_calls.append(kwargs)
        if self.list_error is not None and len(self.list_calls) == (self.fail_list_on_call or 1):
            raise self.list_error
        keys = sorted(self.objects)
        start = int(kwargs.get("ContinuationToken", "0"))
        page = keys[start:start + kwargs["MaxKeys"]]
        end = start + len(page)
        resp = {"Contents": [{"Key": k, "Size": len(self.objects[k])} for k in page], "IsTruncated": end < len(keys)}
        if resp["IsTruncated"]:
            resp["NextContinuationToken"] = str(end)
        return resp

    def get_paginator(self, operation_name: str):
        assert operation_name == "list_objects_v2"
        return FakeListPaginator(self)

    def delete_objects(self, **kwargs):
        self.delete_calls.append(kwargs)
        if self.delete_error is not None:
            raise self.delete_error
        deleted = []
        for o in kwargs["Delete"]["Objects"]:
            self.objects.pop(o["Key"], None)
            deleted.append({"Key": o["Key"]})
        return {"Deleted": deleted}


class FakeListPaginator:
    """Follows NextContinuationToken like botocore's list_objects_v2 paginator."""

    def __init__(self, client: FakeS3):
        self.client = client

    def paginate(self, **kwargs):
        config = kwargs.pop("PaginationConfig", {})
        request = dict(kwargs, MaxKeys=config.get("PageSize", 1000))
        while True:
            page = self.client.list_objects_v2(**request)
            yield page
            token = page.get("NextContinuationToken")
            if not page.get("IsTruncated") or not token:
                return
            request["ContinuationToken"] = token


@pytest.fixture
def boto_s3():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<html></html>")
    (root / "about.html").write_text("<html>about</html>")
    (root / "css" / "main.css").write_text("body {}")
    return root


@pytest.fixture
def inv(site: Path) -> Invocation:
    return Invocation(base_dir=str(site), sha="abc1234def", branch="main", progress_log=ProgressLog())
