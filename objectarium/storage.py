import logging
import os
import time

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from sqlalchemy import event
from sqlalchemy.orm import Session

from .models import Object, ObjectBlob

logger = logging.getLogger(__name__)

BLOB_BACKEND = os.environ.get("BLOB_BACKEND", "database")

MINIO_ENDPOINT = os.environ.get("MINIO_ENDPOINT")
MINIO_ACCESS_KEY = os.environ.get("MINIO_ACCESS_KEY")
MINIO_SECRET_KEY = os.environ.get("MINIO_SECRET_KEY")
MINIO_BUCKET = os.environ.get("MINIO_BUCKET", "objectarium")

_s3 = None

def s3_client():
    global _s3
    if _s3 is None:
        if not (MINIO_ENDPOINT and MINIO_ACCESS_KEY and MINIO_SECRET_KEY):
            raise RuntimeError("MinIO env vars not set (MINIO_ENDPOINT/MINIO_ACCESS_KEY/MINIO_SECRET_KEY)")
        _s3 = boto3.client(
            "s3",
            endpoint_url=MINIO_ENDPOINT,
            aws_access_key_id=MINIO_ACCESS_KEY,
            aws_secret_access_key=MINIO_SECRET_KEY,
            region_name="us-east-1",
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
    return _s3

def wait_for_s3(max_attempts: int = 30, sleep_s: float = 1.0) -> None:
    last_exc = None
    s3 = s3_client()
    for _ in range(max_attempts):
        try:
            s3.list_buckets()
            return
        except Exception as exc:
            last_exc = exc
            time.sleep(sleep_s)
    raise RuntimeError(f"MinIO not ready after {max_attempts} attempts: {last_exc}")

def ensure_bucket_exists() -> None:
    s3 = s3_client()
    try:
        s3.head_bucket(Bucket=MINIO_BUCKET)
    except ClientError:
        s3.create_bucket(Bucket=MINIO_BUCKET)

def object_locator(bucket_name: str, blob_key: str) -> str:
    # every logical bucket lives inside ONE MinIO bucket, namespaced by name
    return f"{bucket_name}/{blob_key}"


class DatabaseBlobStore:
    """Keeps compressed payloads in the object_blobs table, inside the caller's transaction."""

    def put(self, db: Session, obj: Object, data: bytes) -> None:
        obj.blob = ObjectBlob(data=data)

    def get(self, db: Session, obj: Object) -> bytes:
        return obj.blob.data

    def delete(self, db: Session, obj: Object) -> None:
        # cascades with the object row
        pass


class S3BlobStore:
    """Keeps compressed payloads in MinIO/S3.

    Keys are unique per object row, so a re-store of forgotten content never
    shares a key with the deleted row. Uploads happen immediately and are
    removed again if the transaction rolls back; deletions wait for the commit.
    """

    def __init__(self, client=None, bucket: str = MINIO_BUCKET):
        self._client = client
        self.bucket = bucket

    @property
    def client(self):
        if self._client is None:
            self._client = s3_client()
        return self._client

    def put(self, db: Session, obj: Object, data: bytes) -> None:
        locator = object_locator(obj.bucket.name, obj.blob_key)
        self.client.put_object(Bucket=self.bucket, Key=locator, Body=data)
        self._after_transaction(db, on_rollback=lambda: self._remove(locator))

    def get(self, db: Session, obj: Object) -> bytes:
        locator = object_locator(obj.bucket.name, obj.blob_key)
        resp = self.client.get_object(Bucket=self.bucket, Key=locator)
        return resp["Body"].read()

    def delete(self, db: Session, obj: Object) -> None:
        locator = object_locator(obj.bucket.name, obj.blob_key)
        self._after_transaction(db, on_commit=lambda: self._remove(locator))

    def _after_transaction(self, db: Session, on_commit=None, on_rollback=None) -> None:
        # only the first outcome of the current transaction counts
        settled = []

        def _committed(session):
            if not settled:
                settled.append(True)
                if on_commit is not None:
                    on_commit()

        def _rolled_back(session):
            if not settled:
                settled.append(True)
                if on_rollback is not None:
                    on_rollback()

        event.listen(db, "after_commit", _committed, once=True)
        event.listen(db, "after_rollback", _rolled_back, once=True)

    def _remove(self, locator: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=locator)
        except ClientError as exc:
            logger.error("failed to delete blob %s: %s", locator, exc)


_blob_store = None

def blob_store():
    global _blob_store
    if _blob_store is None:
        if BLOB_BACKEND == "s3":
            _blob_store = S3BlobStore()
        elif BLOB_BACKEND == "database":
            _blob_store = DatabaseBlobStore()
        else:
            raise RuntimeError(f"Unknown BLOB_BACKEND: {BLOB_BACKEND}")
    return _blob_store
