"""
Session tokens, the request gate, and the session decorator for the Flask API.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Optional, Tuple

import jwt
from flask import jsonify, request

from prescription_api.config import (
    PUBLIC_PATHS,
    SECRET_KEY,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    SESSION_EXPIRY_HOURS,
)
from prescription_api.errors import Unauthenticated


def generate_token(username: str) -> Tuple[str, datetime]:
    """Sign a session token for *username*; return it with its expiry."""
    issued_at = datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(hours=SESSION_EXPIRY_HOURS)
    payload = {"sub": username, "iat": issued_at, "exp": expires_at}
    return jwt.encode(payload, SECRET_KEY, algorithm="HS256"), expires_at


def verify_token(token: str) -> Optional[str]:
    """Return the username a token asserts, or None if invalid or expired."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    return payload.get("sub") or None


def set_session_cookie(response, username: str):
    """Attach a fresh session cookie for *username* to *response*."""
    token, expires_at = generate_token(username)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        expires=expires_at,
        httponly=True,
        samesite="Lax",
        secure=SESSION_COOKIE_SECURE,
    )
    return response


def requires_session(path: str, has_cookie: bool) -> bool:
    """True when a request must be turned away for lacking a session cookie."""
    return not has_cookie and path not in PUBLIC_PATHS


def install_request_gate(app):
    """Reject cookie-less requests to protected paths before any handler runs.

    CORS preflights carry no cookies and are answered without touching the store.
    """

    @app.before_request
    def request_gate():
        if request.method == "OPTIONS":
            return None
        has_cookie = SESSION_COOKIE_NAME in request.cookies
        if requires_session(request.path, has_cookie):
            return jsonify({"error": Unauthenticated.message}), 401
        return None


def session_required(f):
    """Decorator that resolves the session identity onto ``request.identity``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            raise Unauthenticated()

        username = verify_token(token)
        if not username:
            raise Unauthenticated("Invalid or expired session")

        request.identity = username
        return f(*args, **kwargs)

    return decorated
