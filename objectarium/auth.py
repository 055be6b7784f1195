import hmac
import hashlib
import os
from typing import Optional

from fastapi import Header, HTTPException

API_KEY = os.environ.get("OBJECTARIUM_API_KEY", "")
SENDER_SECRET = os.environ.get("SENDER_SECRET", "")

def sign_sender(sender: str, secret: Optional[str] = None) -> str:
    key = (SENDER_SECRET if secret is None else secret).encode("utf-8")
    return hmac.new(key, sender.encode("utf-8"), hashlib.sha256).hexdigest()

def authorize(x_api_key: Optional[str] = Header(default=None)) -> None:
    if not API_KEY:
        raise HTTPException(status_code=500, detail="OBJECTARIUM_API_KEY not configured")

    if x_api_key is None or not hmac.compare_digest(x_api_key.encode("utf-8"), API_KEY.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Missing or invalid API key")

def current_sender(
    x_sender: Optional[str] = Header(default=None),
    x_sender_signature: Optional[str] = Header(default=None),
) -> str:
    """The address executing a message, proven by an HMAC of the address.

    Execute payloads never carry the sender themselves.
    """
    if not SENDER_SECRET:
        raise HTTPException(status_code=500, detail="SENDER_SECRET not configured")

    if not x_sender or not x_sender_signature:
        raise HTTPException(status_code=401, detail="Missing sender headers")

    expected = sign_sender(x_sender)
    if not hmac.compare_digest(expected.encode("utf-8"), x_sender_signature.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid sender signature")
    return x_sender
