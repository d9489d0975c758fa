"""
Session management service.

This module handles:
1. Storing user sessions with their Gmail access token
2. Validating session cookies (JWT-based)
3. The FastAPI dependency that guards every email/analysis route

Sessions are created by the OAuth sign-in flow, which lives outside this
service; token refresh is its job too. Sessions are stored in-memory.
"""
import jwt
from datetime import datetime, timedelta
from typing import Optional
from fastapi import Request, HTTPException

from inboxswipe.config import get_settings
from inboxswipe.utils.logger import get_logger

logger = get_logger(__name__)

# In-memory session store
# Key: session_id (from JWT), Value: session data dict
_sessions: dict[str, dict] = {}


def create_session(
    user_id: str,
    email: str,
    access_token: str,
    expires_in: int,
) -> str:
    """
    Create a new user session and return a JWT session token.

    The JWT contains only the session ID. Session data (access token,
    triage state) stays server-side.

    Args:
        user_id: Google user ID
        email: User's email
        access_token: Google access token with Gmail read scope
        expires_in: Token expiry in seconds

    Returns:
        JWT session token (to be stored in the ``session`` cookie)
    """
    settings = get_settings()
    now = datetime.utcnow()
    session_id = f"{user_id}_{now.timestamp()}"
    session_expiry = now + timedelta(hours=settings.session_expire_hours)

    _sessions[session_id] = {
        "user_id": user_id,
        "email": email,
        "access_token": access_token,
        "token_expiry": now + timedelta(seconds=expires_in),
        "session_expiry": session_expiry,
        "created_at": now,
        # TriageOrchestrator, created on first triage request
        "triage": None,
    }

    token = jwt.encode(
        {"session_id": session_id, "exp": session_expiry, "iat": now},
        settings.session_secret,
        algorithm="HS256",
    )
    logger.info(f"Created session for user: {email}")
    return token


def _session_id(session_token: str, verify_exp: bool = True) -> Optional[str]:
    try:
        payload = jwt.decode(
            session_token,
            get_settings().session_secret,
            algorithms=["HS256"],
            options={"verify_exp": verify_exp},
        )
    except jwt.ExpiredSignatureError:
        logger.warning("JWT expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid JWT: {e}")
        return None
    return payload.get("session_id")


def get_session(session_token: str) -> Optional[dict]:
    """
    Retrieve session data from a JWT session token.

    Returns None if the JWT is invalid or the session doesn't exist
    or has expired.
    """
    session_id = _session_id(session_token)
    if not session_id or session_id not in _sessions:
        return None

    session = _sessions[session_id]
    if datetime.utcnow() > session["session_expiry"]:
        logger.info(f"Session expired for: {session['email']}")
        delete_session(session_token)
        return None

    return session


def delete_session(session_token: str) -> bool:
    """Delete a session (logout). True if it existed."""
    session_id = _session_id(session_token, verify_exp=False)
    if session_id and session_id in _sessions:
        email = _sessions.pop(session_id).get("email", "unknown")
        logger.info(f"Deleted session for: {email}")
        return True
    return False


def is_token_expired(session: dict) -> bool:
    """True if the Google access token has expired."""
    return datetime.utcnow() > session["token_expiry"]


# Dependency for protected routes
async def get_current_session(request: Request) -> dict:
    """
    FastAPI dependency to get current authenticated session.

    Use this as a dependency in protected routes:

        @router.get("/protected")
        async def protected_route(session: dict = Depends(get_current_session)):
            pass

    Raises:
        HTTPException 401: Not authenticated, session expired, or Gmail
            access token expired
    """
    session_cookie = request.cookies.get("session")

    if not session_cookie:
        raise HTTPException(
            status_code=401,
            detail={"error": True, "code": "AUTH_REQUIRED", "message": "Authentication required"}
        )

    session = get_session(session_cookie)

    if not session:
        raise HTTPException(
            status_code=401,
            detail={"error": True, "code": "SESSION_EXPIRED", "message": "Session expired. Please sign in again."}
        )

    if is_token_expired(session):
        logger.info(f"Gmail token expired for: {session['email']}")
        raise HTTPException(
            status_code=401,
            detail={"error": True, "code": "TOKEN_EXPIRED", "message": "Gmail access expired. Please sign in again."}
        )

    return session
