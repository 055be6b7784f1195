import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import LimitExceeded
from .models import Bucket, Object, Pin
from .pagination import page_size, paginate

logger = logging.getLogger(__name__)


def find_pin(db: Session, obj: Object, address: str) -> Optional[Pin]:
    return db.scalar(select(Pin).where(Pin.object_pk == obj.id, Pin.address == address))


def check_pin_limit(bucket: Bucket, pin_count: int) -> None:
    if bucket.max_object_pins is not None and pin_count >= bucket.max_object_pins:
        raise LimitExceeded("max_object_pins", bucket.max_object_pins)


def pin(db: Session, bucket: Bucket, obj: Object, address: str) -> bool:
    """Pin ``obj`` for ``address``. Returns False when it was already pinned."""
    if find_pin(db, obj, address) is not None:
        return False
    check_pin_limit(bucket, obj.pin_count)

    obj.pins.append(Pin(address=address))
    obj.pin_count += 1
    logger.info("pinned %s for %s", obj.object_id, address)
    return True


def unpin(db: Session, obj: Object, address: str) -> bool:
    """Unpin ``obj`` for ``address``. Returns False when there was no pin."""
    existing = find_pin(db, obj, address)
    if existing is None:
        return False

    obj.pins.remove(existing)
    obj.pin_count -= 1
    logger.info("unpinned %s for %s", obj.object_id, address)
    return True


def list_pins(db: Session, bucket: Bucket, obj: Object, first: Optional[int], after: Optional[str]):
    size = page_size(first, bucket.max_page_size, bucket.default_page_size)
    stmt = select(Pin).where(Pin.object_pk == obj.id)
    pins, has_next_page, cursor = paginate(db, stmt, Pin.id, size, after, parse_key=int)
    return [p.address for p in pins], has_next_page, cursor
