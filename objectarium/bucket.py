"""Bucket and object store operations.

All functions work inside the caller's session and never commit; the
gateway owns the transaction boundaries.
"""
import hashlib
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import compression, pins
from .errors import BucketAlreadyExists, InvalidInput, LimitExceeded, NotFound, ObjectAlreadyStored, Unauthorized, UnsupportedAlgorithm
from .models import Bucket, Object
from .pagination import page_size, paginate, validate_config
from .schemas import InstantiateMsg

logger = logging.getLogger(__name__)

MAX_BUCKET_NAME_LENGTH = 63


def normalize_name(name: str) -> str:
    # whitespace is stripped from anywhere in the name
    normalized = "".join(name.split())
    if not normalized:
        raise InvalidInput("Bucket name could not be empty")
    if len(normalized) > MAX_BUCKET_NAME_LENGTH:
        raise InvalidInput(f"Bucket name could not exceed {MAX_BUCKET_NAME_LENGTH} characters")
    return normalized


def object_id_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def instantiate(db: Session, msg: InstantiateMsg) -> Bucket:
    name = normalize_name(msg.bucket)
    max_page_size, default_page_size = validate_config(
        msg.pagination.max_page_size, msg.pagination.default_page_size
    )

    accepted = msg.accepted_compression_algorithms
    if accepted is None:
        accepted = list(compression.ALGORITHMS)
    for algorithm in accepted:
        if algorithm not in compression.ALGORITHMS:
            raise UnsupportedAlgorithm(algorithm)

    limits = msg.limits
    bucket = Bucket(
        name=name,
        max_total_size=limits.max_total_size,
        max_objects=limits.max_objects,
        max_object_size=limits.max_object_size,
        max_object_pins=limits.max_object_pins,
        max_page_size=max_page_size,
        default_page_size=default_page_size,
        accepted_compression_algorithms=list(dict.fromkeys(accepted)),
        object_count=0,
        total_size=0,
        total_compressed_size=0,
    )
    db.add(bucket)
    try:
        db.flush()
    except IntegrityError:
        raise BucketAlreadyExists(f"Bucket already exists: {name}")
    logger.info("instantiated bucket %s", name)
    return bucket


def get_bucket(db: Session, name: str, for_update: bool = False) -> Bucket:
    stmt = select(Bucket).where(Bucket.name == name)
    if for_update:
        stmt = stmt.with_for_update()
    bucket = db.scalar(stmt)
    if bucket is None:
        raise NotFound(f"Bucket not found: {name}")
    return bucket


def list_buckets(db: Session) -> list[Bucket]:
    return list(db.scalars(select(Bucket).order_by(Bucket.name)))


def find_object(db: Session, bucket: Bucket, object_id: str) -> Optional[Object]:
    return db.scalar(
        select(Object).where(Object.bucket_id == bucket.id, Object.object_id == object_id)
    )


def get_object(db: Session, bucket: Bucket, object_id: str) -> Object:
    obj = find_object(db, bucket, object_id)
    if obj is None:
        raise NotFound(f"Object not found: {object_id}")
    return obj


def check_store_limits(bucket: Bucket, size: int) -> None:
    """Checks run on the raw size, before compression."""
    if bucket.max_object_size is not None and size > bucket.max_object_size:
        raise LimitExceeded("max_object_size", bucket.max_object_size)
    if bucket.max_objects is not None and bucket.object_count + 1 > bucket.max_objects:
        raise LimitExceeded("max_objects", bucket.max_objects)
    if bucket.max_total_size is not None and bucket.total_size + size > bucket.max_total_size:
        raise LimitExceeded("max_total_size", bucket.max_total_size)


def store_object(
    db: Session,
    bucket: Bucket,
    blobs,
    sender: str,
    data: bytes,
    compression_algorithm: str = compression.PASSTHROUGH,
    pin: bool = False,
    owner: Optional[str] = None,
) -> str:
    if owner is not None and owner != sender:
        raise Unauthorized("Object owner must be the sender")
    if compression_algorithm not in compression.ALGORITHMS:
        raise UnsupportedAlgorithm(compression_algorithm)
    if compression_algorithm not in bucket.accepted_compression_algorithms:
        raise InvalidInput(f"Compression algorithm not accepted by the bucket: {compression_algorithm}")

    object_id = object_id_of(data)
    if find_object(db, bucket, object_id) is not None:
        raise ObjectAlreadyStored(f"Object already stored: {object_id}")

    size = len(data)
    check_store_limits(bucket, size)
    if pin:
        pins.check_pin_limit(bucket, 0)

    payload = compression.compress(data, compression_algorithm)
    obj = Object(
        bucket_id=bucket.id,
        object_id=object_id,
        owner=sender,
        size=size,
        compressed_size=len(payload),
        compression_algorithm=compression_algorithm,
        pin_count=0,
    )
    db.add(obj)
    db.flush()
    blobs.put(db, obj, payload)

    bucket.object_count += 1
    bucket.total_size += size
    bucket.total_compressed_size += len(payload)

    if pin:
        pins.pin(db, bucket, obj, sender)

    logger.info(
        "stored %s in %s (%d bytes, %s %d bytes)",
        object_id, bucket.name, size, compression_algorithm, len(payload),
    )
    return object_id


def forget_object(db: Session, bucket: Bucket, blobs, object_id: str, sender: str) -> bool:
    """Drop the sender's pin, then delete the object if nothing pins it anymore.

    Returns True when the object was deleted.
    """
    obj = get_object(db, bucket, object_id)
    had_pin = pins.unpin(db, obj, sender)
    if obj.pin_count > 0:
        return False
    if not had_pin and obj.owner != sender:
        raise Unauthorized("Only the owner or a pinner can forget an object")

    blobs.delete(db, obj)
    bucket.object_count -= 1
    bucket.total_size -= obj.size
    bucket.total_compressed_size -= obj.compressed_size
    db.delete(obj)
    logger.info("forgot %s in %s", object_id, bucket.name)
    return True


def object_data(db: Session, bucket: Bucket, blobs, object_id: str) -> bytes:
    obj = get_object(db, bucket, object_id)
    return compression.decompress(blobs.get(db, obj), obj.compression_algorithm)


def list_objects(
    db: Session,
    bucket: Bucket,
    address: Optional[str] = None,
    first: Optional[int] = None,
    after: Optional[str] = None,
):
    size = page_size(first, bucket.max_page_size, bucket.default_page_size)
    stmt = select(Object).where(Object.bucket_id == bucket.id)
    if address is not None:
        stmt = stmt.where(Object.owner == address)
    return paginate(db, stmt, Object.object_id, size, after)
