# stitchquote/security/jwt.py
from datetime import datetime, timedelta, timezone

import jwt

from stitchquote.config import Settings

ADMIN_COOKIE = "stitchquote_admin"


def create_admin_token(settings: Settings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "admin",
        "role": "admin",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=settings.ADMIN_SESSION_HOURS)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_token(token: str, settings: Settings) -> dict:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
