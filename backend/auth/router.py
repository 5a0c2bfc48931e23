# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – login, logout, current-session info.

Security notes
--------------
* Login returns the *same* error whether the username doesn't exist or the
  password is wrong.  This prevents user-enumeration attacks.
* Password verification and key derivation run on the session manager's
  worker pool, not on the event loop.
* A login that carries a bearer token replaces that session; the old token
  stops working immediately.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from auth.schemas import LoginData, LoginRequest, SessionInfo, TenantInfo, UserInfo
from core.responses import Envelope, ok
from core.security import get_bearer_token, get_current_session, oauth2_scheme

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_payload(session) -> dict:
    return {
        "user": UserInfo.model_validate(session.user),
        "tenant": TenantInfo.model_validate(session.tenant) if session.tenant else None,
        "is_superuser": session.user.is_superuser,
    }


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=Envelope[LoginData])
async def login(
    body: LoginRequest,
    request: Request,
    current_token: Optional[str] = Depends(oauth2_scheme),
):
    """Authenticate, unlock the tenant vault and return a bearer token."""
    sessions = request.app.state.sessions
    token, session = await sessions.login_async(
        body.username, body.password, replace=current_token
    )
    return ok(
        LoginData(
            access_token=token,
            token_type="bearer",
            expires_at=session.expires_at,
            **_session_payload(session),
        )
    )


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=Envelope[str])
def logout(request: Request, token: str = Depends(get_bearer_token)):
    """Discard the session and its key.  Always succeeds."""
    request.app.state.sessions.logout(token)
    return ok("Logged out")


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=Envelope[SessionInfo])
def me(session=Depends(get_current_session)):
    """Describe the caller's session (never the key)."""
    return ok(
        SessionInfo(
            unlocked=session.is_unlocked,
            expires_at=session.expires_at,
            **_session_payload(session),
        )
    )
