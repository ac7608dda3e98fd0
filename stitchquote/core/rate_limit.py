# stitchquote/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address

from stitchquote.config import get_settings

# One shared limiter for the whole app; create_app() toggles `enabled`.
limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().RATE_LIMIT_ENABLED,
)


def quote_limit() -> str:
    return get_settings().RATE_LIMIT_QUOTE


def render_limit() -> str:
    return get_settings().RATE_LIMIT_RENDER


def upload_limit() -> str:
    return get_settings().RATE_LIMIT_UPLOAD
