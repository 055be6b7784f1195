import logging
import os

from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from . import bucket as store
from . import gateway
from .auth import authorize, current_sender
from .db import engine, get_db, wait_for_db
from .errors import ObjectariumError
from .models import Base
from .schemas import BucketOut, BucketResponse, ExecuteMsg, ExecuteResponse, InstantiateMsg, QueryMsg
from .storage import BLOB_BACKEND, blob_store, ensure_bucket_exists, wait_for_s3

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger(__name__)

app = FastAPI(title="objectarium")

def get_blob_store():
    return blob_store()

@app.on_event("startup")
def startup():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    wait_for_db()
    Base.metadata.create_all(bind=engine)
    if BLOB_BACKEND == "s3":
        wait_for_s3()
        ensure_bucket_exists()
    logger.info("objectarium started (blob backend: %s)", BLOB_BACKEND)

@app.exception_handler(ObjectariumError)
async def objectarium_error_handler(request: Request, exc: ObjectariumError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.detail})

@app.get("/health")
def health():
    return {"status": "ok"}

@app.post("/buckets", response_model=BucketResponse, status_code=status.HTTP_201_CREATED)
def instantiate_bucket(payload: InstantiateMsg, db: Session = Depends(get_db), _=Depends(authorize)):
    return gateway.instantiate(db, payload)

@app.get("/buckets", response_model=list[BucketOut])
def list_buckets(db: Session = Depends(get_db), _=Depends(authorize)):
    return store.list_buckets(db)

@app.post("/buckets/{bucket_name}/execute", response_model=ExecuteResponse)
def execute(
    bucket_name: str,
    payload: ExecuteMsg,
    db: Session = Depends(get_db),
    _=Depends(authorize),
    blobs=Depends(get_blob_store),
    sender: str = Depends(current_sender),
):
    return gateway.execute(db, blobs, bucket_name, sender, payload)

@app.post("/buckets/{bucket_name}/query")
def query(
    bucket_name: str,
    payload: QueryMsg,
    db: Session = Depends(get_db),
    blobs=Depends(get_blob_store),
    _=Depends(authorize),
):
    result = gateway.query(db, blobs, bucket_name, payload)
    if isinstance(result, bytes):
        return Response(content=result, media_type="application/octet-stream")
    return result
