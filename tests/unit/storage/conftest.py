"""In-memory stand-ins for the S3 and GCS clients.

They implement only the calls the backends make, with the substrate
semantics the backends rely on: NoSuchKey errors, paginated listings with
delimiters, and GCS generation preconditions.
"""
import io
from pathlib import Path

import pytest
from botocore.exceptions import ClientError
from google.api_core import exceptions as gcs_exceptions

from polystore.infrastructure.storage import GcsStorage, S3Storage, StorageConfig


def no_such_key(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
        operation,
    )


class FakePaginator:
    """list_objects_v2 paginator serving `page_size` entries per page."""

    def __init__(self, client):
        self.client = client

    def paginate(self, Bucket, Prefix="", Delimiter=None):
        self.client.list_calls.append({"Prefix": Prefix, "Delimiter": Delimiter})
        entries = []
        seen_prefixes = set()
        for key in sorted(self.client.objects):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix):]
            if Delimiter and Delimiter in rest:
                common = Prefix + rest.split(Delimiter)[0] + Delimiter
                if common not in seen_prefixes:
                    seen_prefixes.add(common)
                    entries.append(("prefix", common))
            else:
                entries.append(("key", key))

        if not entries:
            yield {"KeyCount": 0}
            return

        size = self.client.page_size
        for i in range(0, len(entries), size):
            page = {}
            for kind, value in entries[i:i + size]:
                if kind == "key":
                    page.setdefault("Contents", []).append({"Key": value})
                else:
                    page.setdefault("CommonPrefixes", []).append({"Prefix": value})
            yield page


class FakeS3Client:
    page_size = 2

    def __init__(self):
        self.objects = {}
        self.list_calls = []
        self.delete_requests = []

    def put_object(self, Bucket, Key, Body, **kwargs):
        data = Body.read() if hasattr(Body, "read") else Body
        self.objects[Key] = {"Body": data, **kwargs}

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise no_such_key("GetObject")
        return {"Body": io.BytesIO(self.objects[Key]["Body"])}

    def copy_object(self, CopySource, Bucket, Key):
        if CopySource["Key"] not in self.objects:
            raise no_such_key("CopyObject")
        self.objects[Key] = dict(self.objects[CopySource["Key"]])

    def put_object_acl(self, Bucket, Key, ACL):
        if Key not in self.objects:
            raise no_such_key("PutObjectAcl")
        self.objects[Key]["ACL"] = ACL

    def delete_objects(self, Bucket, Delete):
        self.delete_requests.append([obj["Key"] for obj in Delete["Objects"]])
        for obj in Delete["Objects"]:
            self.objects.pop(obj["Key"], None)
        return {}

    def get_paginator(self, operation):
        assert operation == "list_objects_v2"
        return FakePaginator(self)


class FakeBlob:
    def __init__(self, bucket, name, generation=None):
        self.bucket = bucket
        self.name = name
        self.generation = generation
        self.cache_control = None

    def upload_from_filename(self, filename, content_type=None, **kwargs):
        self.bucket.uploads.append({
            "name": self.name,
            "content_type": content_type,
            "cache_control": self.cache_control,
            **kwargs,
        })
        self.bucket.check_precondition(self.name, kwargs.get("if_generation_match"))
        self.bucket.put(self.name, Path(filename).read_bytes(), content_type)

    def open(self, mode="rb"):
        obj = self.bucket.objects.get(self.name)
        if obj is None:
            raise gcs_exceptions.NotFound(f"No such object: {self.name}")
        return io.BytesIO(obj["data"])

    def delete(self):
        if self.name not in self.bucket.objects:
            raise gcs_exceptions.NotFound(f"No such object: {self.name}")
        del self.bucket.objects[self.name]


class FakeBucket:
    def __init__(self, name):
        self.name = name
        self.objects = {}
        self.uploads = []
        self.copies = []
        self._generation = 0

    def put(self, name, data, content_type=None):
        """Write an object, as this or any other client would."""
        self._generation += 1
        self.objects[name] = {"data": data, "generation": self._generation, "content_type": content_type}

    def check_precondition(self, name, if_generation_match):
        if if_generation_match is None:
            return
        current = self.objects.get(name)
        current_generation = current["generation"] if current else 0
        if if_generation_match != current_generation:
            raise gcs_exceptions.PreconditionFailed(
                f"At least one of the pre-conditions you specified did not hold: {name}"
            )

    def blob(self, name):
        return FakeBlob(self, name)

    def get_blob(self, name):
        obj = self.objects.get(name)
        return FakeBlob(self, name, obj["generation"]) if obj else None

    def copy_blob(self, blob, destination_bucket, new_name, if_generation_match=None):
        self.copies.append({"source": blob.name, "target": new_name, "if_generation_match": if_generation_match})
        source = self.objects.get(blob.name)
        if source is None:
            raise gcs_exceptions.NotFound(f"No such object: {blob.name}")
        destination_bucket.check_precondition(new_name, if_generation_match)
        destination_bucket.put(new_name, source["data"], source["content_type"])


class FakeBlobIterator:
    """Iterator whose `prefixes` fill up once iteration completes, like HTTPIterator."""

    def __init__(self, blobs, prefixes):
        self._blobs = blobs
        self._prefixes = prefixes
        self.prefixes = set()

    def __iter__(self):
        yield from self._blobs
        self.prefixes = set(self._prefixes)


class FakeGcsClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name))

    def list_blobs(self, bucket_name, prefix=None, delimiter=None):
        bucket = self.bucket(bucket_name)
        prefix = prefix or ""
        blobs, prefixes = [], set()
        for name in sorted(bucket.objects):
            if not name.startswith(prefix):
                continue
            rest = name[len(prefix):]
            if delimiter and delimiter in rest:
                prefixes.add(prefix + rest.split(delimiter)[0] + delimiter)
            else:
                blobs.append(bucket.get_blob(name))
        return FakeBlobIterator(blobs, prefixes)


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def s3_storage(s3_client):
    config = StorageConfig(backend="s3", bucket_name="test-bucket", cache_max_age=3600)
    return S3Storage(config, client=s3_client)


@pytest.fixture
def gcs_client():
    return FakeGcsClient()


@pytest.fixture
def gcs_bucket(gcs_client):
    return gcs_client.bucket("test-bucket")


@pytest.fixture
def gcs_storage(gcs_client):
    config = StorageConfig(backend="gcs", bucket_name="test-bucket", project_id="test-project", cache_max_age=600)
    return GcsStorage(config, client=gcs_client)


@pytest.fixture
def uniform_gcs_storage(gcs_client):
    config = StorageConfig(
        backend="gcs",
        bucket_name="test-bucket",
        project_id="test-project",
        uniform_bucket_level_access=True,
        cache_max_age=600,
    )
    return GcsStorage(config, client=gcs_client)
