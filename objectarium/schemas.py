from typing import Optional, Union

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field, RootModel

from .compression import PASSTHROUGH

class Message(BaseModel):
    model_config = ConfigDict(extra="forbid")

# --- instantiate ---

class BucketLimits(Message):
    max_total_size: Optional[int] = Field(default=None, ge=0)
    max_objects: Optional[int] = Field(default=None, ge=0)
    max_object_size: Optional[int] = Field(default=None, ge=0)
    max_object_pins: Optional[int] = Field(default=None, ge=0)

class PaginationConfig(Message):
    max_page_size: Optional[int] = Field(default=None, ge=1)
    default_page_size: Optional[int] = Field(default=None, ge=1)

class InstantiateMsg(Message):
    bucket: str
    limits: BucketLimits = Field(default_factory=BucketLimits)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    accepted_compression_algorithms: Optional[list[str]] = None

# --- execute ---

class StoreObject(Message):
    data: Base64Bytes
    compression_algorithm: str = PASSTHROUGH
    pin: bool = False
    owner: Optional[str] = None

class ObjectRef(Message):
    id: str

class StoreObjectMsg(Message):
    store_object: StoreObject

class ForgetObjectMsg(Message):
    forget_object: ObjectRef

class PinObjectMsg(Message):
    pin_object: ObjectRef

class UnpinObjectMsg(Message):
    unpin_object: ObjectRef

class ExecuteMsg(RootModel[Union[StoreObjectMsg, ForgetObjectMsg, PinObjectMsg, UnpinObjectMsg]]):
    pass

class ExecuteResponse(BaseModel):
    action: str
    id: str

# --- query ---

class Empty(Message):
    pass

class ObjectsQuery(Message):
    address: Optional[str] = None
    first: Optional[int] = Field(default=None, ge=1)
    after: Optional[str] = None

class ObjectPinsQuery(Message):
    id: str
    first: Optional[int] = Field(default=None, ge=1)
    after: Optional[str] = None

class BucketQueryMsg(Message):
    bucket: Empty

class ObjectQueryMsg(Message):
    object: ObjectRef

class ObjectsQueryMsg(Message):
    objects: ObjectsQuery

class ObjectDataQueryMsg(Message):
    object_data: ObjectRef

class ObjectPinsQueryMsg(Message):
    object_pins: ObjectPinsQuery

class QueryMsg(RootModel[Union[BucketQueryMsg, ObjectQueryMsg, ObjectsQueryMsg, ObjectDataQueryMsg, ObjectPinsQueryMsg]]):
    pass

# --- responses ---

class BucketStat(BaseModel):
    object_count: int
    total_size: int
    total_compressed_size: int

    class Config:
        from_attributes = True

class BucketResponse(BaseModel):
    name: str
    limits: BucketLimits
    pagination: PaginationConfig
    accepted_compression_algorithms: list[str]
    stat: BucketStat

class ObjectResponse(BaseModel):
    id: str
    owner: str
    is_pinned: bool
    size: int
    compressed_size: int
    compression_algorithm: str

class PageInfo(BaseModel):
    has_next_page: bool
    cursor: str

class ObjectsResponse(BaseModel):
    data: list[ObjectResponse]
    page_info: PageInfo

class ObjectPinsResponse(BaseModel):
    data: list[str]
    page_info: PageInfo

class BucketOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
