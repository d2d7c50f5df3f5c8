"""Identity of the user performing a save, decoded from the ``authToken`` cookie."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "authToken"


@dataclass(frozen=True)
class Actor:
    user_id: int
    email: str

    @property
    def fallback_name(self) -> str:
        return self.email.split("@")[0]


def encode_auth_token(user_id: int, email: str, issued_at: Optional[int] = None) -> str:
    issued_at = issued_at if issued_at is not None else int(time.time() * 1000)
    raw = f"{user_id}:{email}:{issued_at}"
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_auth_token(token: Optional[str]) -> Optional[Actor]:
    """Decode ``base64("userId:email:timestamp")``; anything malformed yields ``None``."""
    if not token:
        return None
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
        user_id, email, *_ = decoded.split(":")
        return Actor(user_id=int(user_id), email=email)
    except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
        logger.warning("Could not decode %s cookie: %s", AUTH_COOKIE_NAME, exc)
        return None


def get_actor(auth_token: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE_NAME)) -> Optional[Actor]:
    return decode_auth_token(auth_token)


__all__ = ["AUTH_COOKIE_NAME", "Actor", "decode_auth_token", "encode_auth_token", "get_actor"]
