# stitchquote/routers/admin.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from stitchquote.dependencies import Services, get_services
from stitchquote.domain.errors import (
    AdminAuthError,
    QuoteFetchFailed,
    QuoteNotFound,
    QuoteValidationError,
    UpstreamUnavailable,
)
from stitchquote.domain.reconciliation import QuoteView, reconcile_quote
from stitchquote.schemas.quote import AdminLogin, StatusUpdate
from stitchquote.security.admin_auth import (
    check_password,
    clear_session_cookie,
    require_admin,
    require_admin_html,
    safe_next,
    set_session_cookie,
)
from stitchquote.services.render_orchestrator import generate_or_fetch_render

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api/admin", tags=["admin"])
pages_router = APIRouter(prefix="/admin", tags=["admin-pages"], include_in_schema=False)

templates = Jinja2Templates(
    directory=str(Path(__file__).resolve().parents[1] / "templates" / "admin")
)

LIST_LIMIT_DEFAULT = 50
LIST_LIMIT_MAX = 200


def load_record(services: Services, quote_id: str) -> Dict[str, Any]:
    record = services.quotes.fetch_raw(quote_id)
    if record is None:
        raise QuoteNotFound("Quote not found.")
    return record


def load_view(services: Services, quote_id: str) -> QuoteView:
    return reconcile_quote(load_record(services, quote_id))


def _clip(value: Any, limit: int = 300) -> Any:
    if isinstance(value, str) and len(value) > limit:
        return f"{value[:limit]}... ({len(value)} chars)"
    if isinstance(value, dict):
        return {k: _clip(v, limit) for k, v in value.items()}
    if isinstance(value, list):
        return [_clip(v, limit) for v in value]
    return value


# ----------------------------------------------------
# JSON API
# ----------------------------------------------------
@api_router.post("/login")
def api_login(payload: AdminLogin, services: Services = Depends(get_services)) -> JSONResponse:
    check_password(services.settings, payload.password)
    next_path = safe_next(payload.next)
    response = JSONResponse({"ok": True, "next": next_path})
    set_session_cookie(response, services.settings)
    return response


@api_router.post("/logout")
def api_logout() -> JSONResponse:
    response = JSONResponse({"ok": True})
    clear_session_cookie(response)
    return response


@api_router.get("/quotes", dependencies=[Depends(require_admin)])
def api_list_quotes(
    limit: int = Query(LIST_LIMIT_DEFAULT, ge=1, le=LIST_LIMIT_MAX),
    services: Services = Depends(get_services),
) -> Dict:
    rows = services.quotes.list_recent(limit)
    return {"quotes": [reconcile_quote(r).summary() for r in rows]}


@api_router.get("/quotes/{quote_id}", dependencies=[Depends(require_admin)])
def api_get_quote(quote_id: str, services: Services = Depends(get_services)) -> Dict:
    return load_view(services, quote_id).to_dict()


@api_router.post("/quotes/{quote_id}/status", dependencies=[Depends(require_admin)])
def api_update_status(
    quote_id: str,
    payload: StatusUpdate,
    services: Services = Depends(get_services),
) -> Dict:
    if not services.quotes.update(quote_id, status=payload.status):
        raise QuoteNotFound("Quote not found.")
    logger.info("quote %s status -> %s", quote_id, payload.status)
    return {"ok": True, "id": quote_id, "status": payload.status}


# ----------------------------------------------------
# HTML pages
# ----------------------------------------------------
@pages_router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, next: Optional[str] = None):
    return templates.TemplateResponse(
        request, "login.html", {"next": safe_next(next), "error": None}
    )


@pages_router.post("/login", response_class=HTMLResponse)
def login_form(
    request: Request,
    password: str = Form(""),
    next: str = Form(""),
    services: Services = Depends(get_services),
):
    next_path = safe_next(next)
    try:
        check_password(services.settings, password)
    except AdminAuthError as e:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"next": next_path, "error": e.message},
            status_code=e.status_code,
        )
    response = RedirectResponse(next_path, status_code=303)
    set_session_cookie(response, services.settings)
    return response


@pages_router.post("/logout")
def logout_form() -> RedirectResponse:
    response = RedirectResponse("/admin/login", status_code=303)
    clear_session_cookie(response)
    return response


@pages_router.get("", dependencies=[Depends(require_admin_html)])
def admin_home() -> RedirectResponse:
    return RedirectResponse("/admin/quotes", status_code=303)


@pages_router.get("/quotes", response_class=HTMLResponse, dependencies=[Depends(require_admin_html)])
def quotes_page(
    request: Request,
    limit: int = Query(LIST_LIMIT_DEFAULT, ge=1, le=LIST_LIMIT_MAX),
    services: Services = Depends(get_services),
):
    try:
        rows = services.quotes.list_recent(limit)
    except QuoteFetchFailed as e:
        logger.error("admin list fetch failed: %s", e.detail)
        return templates.TemplateResponse(
            request,
            "quotes.html",
            {"quotes": [], "fetch_error": e.detail or e.message},
            status_code=503,
        )
    return templates.TemplateResponse(
        request,
        "quotes.html",
        {"quotes": [reconcile_quote(r).summary() for r in rows], "fetch_error": None},
    )


@pages_router.get(
    "/quotes/{quote_id}", response_class=HTMLResponse, dependencies=[Depends(require_admin_html)]
)
def quote_detail_page(
    request: Request,
    quote_id: str,
    msg: Optional[str] = None,
    services: Services = Depends(get_services),
):
    # this page doubles as a debugging tool: degrade, don't crash
    try:
        record = load_record(services, quote_id)
    except QuoteNotFound:
        return templates.TemplateResponse(
            request, "quote_not_found.html", {"quote_id": quote_id}, status_code=404
        )
    except QuoteFetchFailed as e:
        logger.error("admin detail fetch failed id=%s: %s", quote_id, e.detail)
        return templates.TemplateResponse(
            request,
            "quote_detail.html",
            {"quote_id": quote_id, "view": None, "fetch_error": e.detail or e.message, "msg": msg},
            status_code=503,
        )

    view = reconcile_quote(record)
    raw_json = json.dumps(_clip(record), indent=2, default=str)
    return templates.TemplateResponse(
        request,
        "quote_detail.html",
        {"quote_id": quote_id, "view": view, "fetch_error": None, "msg": msg, "raw_json": raw_json},
    )


@pages_router.post("/quotes/{quote_id}/render", dependencies=[Depends(require_admin_html)])
def render_from_admin(quote_id: str, services: Services = Depends(get_services)) -> RedirectResponse:
    back = f"/admin/quotes/{quote_id}"
    try:
        view = load_view(services, quote_id)
        result = generate_or_fetch_render(
            services,
            quote_id=quote_id,
            category=view.category,
            photo_urls=view.photo_urls,
        )
    except (QuoteValidationError, UpstreamUnavailable, QuoteNotFound, QuoteFetchFailed) as e:
        # GenerationFailed is also stored on the record as render_error
        logger.warning("admin render failed id=%s: %s", quote_id, e.message)
        return RedirectResponse(f"{back}?msg=render_failed", status_code=303)

    return RedirectResponse(f"{back}?msg={'cached' if result.cached else 'rendered'}", status_code=303)
