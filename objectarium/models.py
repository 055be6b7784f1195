import uuid
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, Integer, LargeBinary, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

class Base(DeclarativeBase):
    pass

class Bucket(Base):
    __tablename__ = "buckets"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)

    # limits, NULL means unlimited
    max_total_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_objects: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_object_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    max_object_pins: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    max_page_size: Mapped[int] = mapped_column(Integer, nullable=False)
    default_page_size: Mapped[int] = mapped_column(Integer, nullable=False)
    accepted_compression_algorithms: Mapped[list[str]] = mapped_column(JSON, nullable=False)

    object_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_compressed_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    objects: Mapped[list["Object"]] = relationship(back_populates="bucket", cascade="all, delete-orphan")

class Object(Base):
    __tablename__ = "objects"
    __table_args__ = (
        UniqueConstraint("bucket_id", "object_id", name="uq_bucket_object_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    bucket_id: Mapped[int] = mapped_column(ForeignKey("buckets.id", ondelete="CASCADE"), nullable=False)

    # hex sha256 of the raw content
    object_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    compressed_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # S3 key suffix, fresh for every stored row
    blob_key: Mapped[str] = mapped_column(String(36), nullable=False, default=lambda: str(uuid.uuid4()))
    compression_algorithm: Mapped[str] = mapped_column(String(32), nullable=False)
    pin_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    bucket: Mapped[Bucket] = relationship(back_populates="objects")
    pins: Mapped[list["Pin"]] = relationship(
        back_populates="object", cascade="all, delete-orphan", order_by="Pin.id"
    )
    blob: Mapped[Optional["ObjectBlob"]] = relationship(cascade="all, delete-orphan", uselist=False)

    @property
    def is_pinned(self) -> bool:
        return self.pin_count > 0

class Pin(Base):
    __tablename__ = "pins"
    __table_args__ = (
        UniqueConstraint("object_pk", "address", name="uq_object_pin_address"),
    )

    # insertion order of the pins of an object
    id: Mapped[int] = mapped_column(primary_key=True)
    object_pk: Mapped[int] = mapped_column(ForeignKey("objects.id", ondelete="CASCADE"), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    object: Mapped[Object] = relationship(back_populates="pins")

class ObjectBlob(Base):
    __tablename__ = "object_blobs"

    object_pk: Mapped[int] = mapped_column(ForeignKey("objects.id", ondelete="CASCADE"), primary_key=True)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
