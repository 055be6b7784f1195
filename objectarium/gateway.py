"""Dispatch of instantiate, execute and query messages onto a bucket.

Execute calls are the only path that mutates state. Each one runs in a
single transaction that is rolled back on any error, so a failed call
leaves the bucket untouched.
"""
import logging
from contextlib import contextmanager
from typing import Union

from sqlalchemy.orm import Session

from . import bucket as store
from . import pins
from .errors import ObjectariumError
from .models import Bucket, Object
from .schemas import (
    BucketLimits,
    BucketQueryMsg,
    BucketResponse,
    BucketStat,
    ExecuteMsg,
    ExecuteResponse,
    ForgetObjectMsg,
    InstantiateMsg,
    ObjectDataQueryMsg,
    ObjectPinsQueryMsg,
    ObjectPinsResponse,
    ObjectQueryMsg,
    ObjectResponse,
    ObjectsQueryMsg,
    ObjectsResponse,
    PageInfo,
    PaginationConfig,
    PinObjectMsg,
    QueryMsg,
    StoreObjectMsg,
    UnpinObjectMsg,
)

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def bucket_response(bucket: Bucket) -> BucketResponse:
    return BucketResponse(
        name=bucket.name,
        limits=BucketLimits(
            max_total_size=bucket.max_total_size,
            max_objects=bucket.max_objects,
            max_object_size=bucket.max_object_size,
            max_object_pins=bucket.max_object_pins,
        ),
        pagination=PaginationConfig(
            max_page_size=bucket.max_page_size,
            default_page_size=bucket.default_page_size,
        ),
        accepted_compression_algorithms=bucket.accepted_compression_algorithms,
        stat=BucketStat.model_validate(bucket),
    )


def object_response(obj: Object) -> ObjectResponse:
    return ObjectResponse(
        id=obj.object_id,
        owner=obj.owner,
        is_pinned=obj.is_pinned,
        size=obj.size,
        compressed_size=obj.compressed_size,
        compression_algorithm=obj.compression_algorithm,
    )


def instantiate(db: Session, msg: InstantiateMsg) -> BucketResponse:
    with transaction(db):
        bucket = store.instantiate(db, msg)
    return bucket_response(bucket)


def execute(db: Session, blobs, bucket_name: str, sender: str, msg: ExecuteMsg) -> ExecuteResponse:
    """Apply one execute message on behalf of ``sender``."""
    variant = msg.root
    try:
        with transaction(db):
            bucket = store.get_bucket(db, bucket_name, for_update=True)

            if isinstance(variant, StoreObjectMsg):
                m = variant.store_object
                object_id = store.store_object(
                    db, bucket, blobs, sender, m.data,
                    compression_algorithm=m.compression_algorithm,
                    pin=m.pin,
                    owner=m.owner,
                )
                response = ExecuteResponse(action="store_object", id=object_id)

            elif isinstance(variant, ForgetObjectMsg):
                object_id = variant.forget_object.id
                store.forget_object(db, bucket, blobs, object_id, sender)
                response = ExecuteResponse(action="forget_object", id=object_id)

            elif isinstance(variant, PinObjectMsg):
                object_id = variant.pin_object.id
                pins.pin(db, bucket, store.get_object(db, bucket, object_id), sender)
                response = ExecuteResponse(action="pin_object", id=object_id)

            elif isinstance(variant, UnpinObjectMsg):
                object_id = variant.unpin_object.id
                pins.unpin(db, store.get_object(db, bucket, object_id), sender)
                response = ExecuteResponse(action="unpin_object", id=object_id)

            else:
                raise TypeError(f"unexpected execute message: {type(variant).__name__}")
    except ObjectariumError as exc:
        logger.warning("execute on %s by %s rejected: %s", bucket_name, sender, exc.detail)
        raise
    return response


def query(db: Session, blobs, bucket_name: str, msg: QueryMsg) -> Union[BucketResponse, ObjectResponse, ObjectsResponse, ObjectPinsResponse, bytes]:
    variant = msg.root
    bucket = store.get_bucket(db, bucket_name)

    if isinstance(variant, BucketQueryMsg):
        return bucket_response(bucket)

    if isinstance(variant, ObjectQueryMsg):
        return object_response(store.get_object(db, bucket, variant.object.id))

    if isinstance(variant, ObjectsQueryMsg):
        q = variant.objects
        objects, has_next_page, cursor = store.list_objects(
            db, bucket, address=q.address, first=q.first, after=q.after
        )
        return ObjectsResponse(
            data=[object_response(o) for o in objects],
            page_info=PageInfo(has_next_page=has_next_page, cursor=cursor),
        )

    if isinstance(variant, ObjectDataQueryMsg):
        return store.object_data(db, bucket, blobs, variant.object_data.id)

    if isinstance(variant, ObjectPinsQueryMsg):
        q = variant.object_pins
        obj = store.get_object(db, bucket, q.id)
        addresses, has_next_page, cursor = pins.list_pins(db, bucket, obj, q.first, q.after)
        return ObjectPinsResponse(
            data=addresses,
            page_info=PageInfo(has_next_page=has_next_page, cursor=cursor),
        )

    raise TypeError(f"unexpected query message: {type(variant).__name__}")
