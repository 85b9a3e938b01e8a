"""LINE login bridge endpoints: /api/auth/*."""

from __future__ import annotations

import jwt
import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from fitpeak.auth.jwt import create_access_token, create_confirm_token, verify_confirm_token
from fitpeak.auth.line_login import (
    CONFIRM_COOKIE,
    COOKIE_MAX_AGE,
    NEXT_COOKIE,
    STATE_COOKIE,
    LineLoginClient,
    LineLoginError,
    build_authorize_url,
    build_login_url,
    callback_uri,
    generate_state,
    get_line_login_client,
    is_safe_next_path,
    link_line_user,
)
from fitpeak.config import Settings, get_settings
from fitpeak.database import get_session
from fitpeak.errors import AuthenticationRequired

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _error_redirect(request: Request, code: str) -> RedirectResponse:
    return RedirectResponse(f"{_origin(request)}/?error={code}", status_code=307)


def _set_cookie(response: RedirectResponse, key: str, value: str, settings: Settings) -> None:
    response.set_cookie(
        key,
        value,
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.get("/line")
async def line_login_start(
    request: Request,
    next_path: str | None = Query(None, alias="next"),
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Redirect to LINE's authorize page with a fresh CSRF state."""
    if not settings.line_channel_id or not settings.app_url:
        return _error_redirect(request, "line_config_missing")

    state = generate_state()
    response = RedirectResponse(
        build_authorize_url(settings.line_channel_id, callback_uri(settings.app_url), state),
        status_code=307,
    )
    _set_cookie(response, STATE_COOKIE, state, settings)
    if next_path is not None and is_safe_next_path(next_path):
        _set_cookie(response, NEXT_COOKIE, next_path, settings)
    return response


@router.get("/callback/line")
async def line_login_callback(
    request: Request,
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    client: LineLoginClient = Depends(get_line_login_client),
    db: AsyncSession = Depends(get_session),
) -> RedirectResponse:
    """Finish the code flow and log the user in."""
    saved_state = request.cookies.get(STATE_COOKIE)
    try:
        if error or not code or not state:
            raise LineLoginError(reason=f"provider error: {error}" if error else "missing code or state")
        if not saved_state or saved_state != state:
            raise LineLoginError(reason="state mismatch")
        if not client.configured or not settings.app_url:
            raise LineLoginError(reason="LINE login not configured")

        id_token = await client.exchange_code(code, callback_uri(settings.app_url))
        identity = client.verify_identity(id_token)
        linked = await link_line_user(db, identity)
        await db.commit()

        login_url = build_login_url(
            settings.app_url,
            create_access_token(linked.user.id, auth_method="line"),
            request.cookies.get(NEXT_COOKIE),
        )
        if linked.newly_linked_existing:
            if not settings.service_role_key:
                raise LineLoginError(reason="service role key not configured")
            response = RedirectResponse(f"{settings.base_url}/auth/line-confirm", status_code=307)
            _set_cookie(
                response,
                CONFIRM_COOKIE,
                create_confirm_token(identity.email, login_url, settings.service_role_key, COOKIE_MAX_AGE),
                settings,
            )
        else:
            response = RedirectResponse(login_url, status_code=307)
    except LineLoginError as e:
        logger.warning("line_login_failed", code=e.code, reason=e.reason)
        response = _error_redirect(request, e.code)

    if saved_state:
        response.delete_cookie(STATE_COOKIE, path="/")
    if request.cookies.get(NEXT_COOKIE):
        response.delete_cookie(NEXT_COOKIE, path="/")
    return response


@router.get("/line-confirm")
async def line_confirm_info(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> dict:
    """Email shown on the interstitial page."""
    token = request.cookies.get(CONFIRM_COOKIE)
    if not token or not settings.service_role_key:
        raise AuthenticationRequired("確認の有効期限が切れました。もう一度ログインしてください")
    try:
        payload = verify_confirm_token(token, settings.service_role_key)
    except jwt.InvalidTokenError as e:
        raise AuthenticationRequired("確認の有効期限が切れました。もう一度ログインしてください") from e
    return {"email": payload["email"]}


@router.get("/line-confirm-continue")
async def line_confirm_continue(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Consume the confirm cookie and continue to the login URL."""
    token = request.cookies.get(CONFIRM_COOKIE)
    fallback = f"{settings.base_url or _origin(request)}/"
    target = fallback
    if token and settings.service_role_key:
        try:
            target = verify_confirm_token(token, settings.service_role_key)["url"]
        except jwt.InvalidTokenError:
            logger.info("line_confirm_token_invalid")

    response = RedirectResponse(target, status_code=307)
    response.set_cookie(
        CONFIRM_COOKIE,
        "",
        max_age=0,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    return response
