# stitchquote/security/admin_auth.py
import logging
import secrets
from typing import Optional
from urllib.parse import quote

import jwt
from fastapi import Depends, Request
from fastapi.responses import RedirectResponse, Response

from stitchquote.config import Settings
from stitchquote.dependencies import Services, get_services
from stitchquote.domain.errors import AdminAuthError, AdminMisconfigured
from stitchquote.security.jwt import ADMIN_COOKIE, create_admin_token, decode_token

logger = logging.getLogger(__name__)

DEFAULT_NEXT = "/admin/quotes"


class AdminLoginRequired(AdminAuthError):
    """Raised by HTML admin pages; handled as a redirect to the login form."""

    def __init__(self, next_path: str):
        super().__init__("Login required.")
        self.next_path = next_path


def safe_next(value: Optional[str]) -> str:
    # only same-site paths; no scheme-relative or absolute URLs
    v = (value or "").strip()
    if not v.startswith("/") or v.startswith("//"):
        return DEFAULT_NEXT
    return v


def check_password(settings: Settings, password: str) -> None:
    if not settings.ADMIN_PASSWORD:
        raise AdminMisconfigured("ADMIN_PASSWORD is not configured.")
    if not secrets.compare_digest((password or "").encode(), settings.ADMIN_PASSWORD.encode()):
        logger.warning("admin login rejected")
        raise AdminAuthError("Invalid admin password.")


def set_session_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        ADMIN_COOKIE,
        create_admin_token(settings),
        max_age=settings.ADMIN_SESSION_HOURS * 3600,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(ADMIN_COOKIE, path="/")


def _has_session(request: Request, settings: Settings) -> bool:
    token = request.cookies.get(ADMIN_COOKIE)
    if not token:
        return False
    try:
        claims = decode_token(token, settings)
    except jwt.PyJWTError:
        return False
    return claims.get("role") == "admin"


def require_admin(request: Request, services: Services = Depends(get_services)) -> None:
    if not _has_session(request, services.settings):
        raise AdminAuthError("Unauthorized.")


def require_admin_html(request: Request, services: Services = Depends(get_services)) -> None:
    if not _has_session(request, services.settings):
        raise AdminLoginRequired(request.url.path)


def login_redirect(next_path: str) -> RedirectResponse:
    return RedirectResponse(f"/admin/login?next={quote(safe_next(next_path))}", status_code=303)
