"""
Gastronomique - Admin Session Auth

Single-admin authentication with two independent channels:

1. ``Authorization: Basic ...`` headers, checked directly against the
   configured credentials (scripts, curl, other non-browser callers).
2. A signed, time-limited session token carried in the ``admin_session``
   cookie (browsers that went through ``POST /api/admin/login``).

Tokens look like ``<base64url(JSON)>.<hex HMAC-SHA256>``.  The signature is
computed over the encoded payload segment itself, so changing any character
of either half invalidates the token.  Tokens are stateless: logging out only
clears the cookie, and a token stays valid until its ``exp`` passes.

Usage:
    - Add ``require_admin`` as a router dependency on every write route.
    - Call ``set_session_cookie`` / ``clear_session_cookie`` from the login
      and logout handlers.
    - Call ``get_current_user(request, settings)`` for cookie-only checks.
"""

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, Optional

from fastapi import Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from loguru import logger

from gastronomique.config import Settings

UNAUTHORIZED_DETAIL = "You must be logged in as admin to perform this action"


class TokenSigningError(Exception):
    """Raised when a token cannot be signed (e.g. the secret is missing)."""


@dataclass(frozen=True)
class TokenPayload:
    """The verified contents of a session token."""

    subject: str
    issued_at: int
    expires_at: int


# ---------------------------------------------------------------------------
# Channel results
# ---------------------------------------------------------------------------


class ChannelStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    NOT_ATTEMPTED = "not_attempted"
    FAILED = "failed"


@dataclass(frozen=True)
class ChannelResult:
    """Outcome of one authentication channel for a single request."""

    status: ChannelStatus
    subject: Optional[str] = None
    reason: str = ""

    @classmethod
    def authenticated(cls, subject: str) -> "ChannelResult":
        return cls(ChannelStatus.AUTHENTICATED, subject=subject)

    @classmethod
    def not_attempted(cls) -> "ChannelResult":
        return cls(ChannelStatus.NOT_ATTEMPTED)

    @classmethod
    def failed(cls, reason: str) -> "ChannelResult":
        return cls(ChannelStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is ChannelStatus.AUTHENTICATED


@dataclass(frozen=True)
class AuthOutcome:
    """Combined result of the header and cookie channels."""

    header: ChannelResult
    cookie: ChannelResult

    @property
    def authenticated(self) -> bool:
        return self.header.ok or self.cookie.ok

    @property
    def subject(self) -> Optional[str]:
        if self.header.ok:
            return self.header.subject
        if self.cookie.ok:
            return self.cookie.subject
        return None

    @property
    def channel(self) -> Optional[str]:
        if self.header.ok:
            return "header"
        if self.cookie.ok:
            return "cookie"
        return None


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _sign(secret: str, payload: str) -> str:
    """Create an HMAC-SHA256 signature for a payload string."""
    if not secret:
        raise TokenSigningError("Token signing secret is not configured")
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    padding = "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _is_timestamp(value: Any) -> bool:
    # bool is an int subclass; a JSON ``true`` is not a timestamp
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_token(token: str) -> Optional[tuple]:
    """Split a token into ``(segment, signature, claims)`` or return None."""
    if token.count(".") != 1:
        return None
    segment, signature = token.split(".")
    if not segment or not signature:
        return None
    claims = json.loads(_b64decode(segment).decode("utf-8"))
    if not isinstance(claims, dict):
        return None
    return segment, signature, claims


def issue_token(settings: Settings, username: str, now: Optional[float] = None) -> str:
    """Create a signed session token for *username*.

    The caller must already have validated the credentials.  Raises
    ``TokenSigningError`` if the signing secret is missing.
    """
    issued_at = int(time.time() if now is None else now)
    claims = {
        "sub": username,
        "iat": issued_at,
        "exp": issued_at + settings.session_max_age,
    }
    data = json.dumps(claims, separators=(",", ":"), ensure_ascii=False)
    segment = _b64encode(data.encode("utf-8"))
    return f"{segment}.{_sign(settings.secret_key, segment)}"


def verify_token(
    settings: Settings, token: Optional[str], now: Optional[float] = None
) -> Optional[TokenPayload]:
    """Verify a session token.  Returns the payload, or None if invalid.

    Checks, in order: structure, signature, subject, expiry.  A token
    without an integer ``exp`` (or ``iat``) is rejected.  Nothing raised
    while decoding ever escapes this function.
    """
    if not token or not isinstance(token, str):
        return None

    try:
        parsed = _parse_token(token)
        if parsed is None:
            return None
        segment, signature, claims = parsed

        expected_sig = _sign(settings.secret_key, segment)
        if not hmac.compare_digest(
            signature.encode("utf-8"), expected_sig.encode("utf-8")
        ):
            return None

        subject = claims.get("sub")
        if not isinstance(subject, str) or not hmac.compare_digest(
            subject.encode("utf-8"), settings.admin_username.encode("utf-8")
        ):
            return None

        issued_at = claims.get("iat")
        expires_at = claims.get("exp")
        if not _is_timestamp(expires_at) or not _is_timestamp(issued_at):
            return None

        current = time.time() if now is None else now
        if current > expires_at:
            return None

        return TokenPayload(subject=subject, issued_at=issued_at, expires_at=expires_at)
    except Exception as e:
        logger.debug("Session token rejected: {}", type(e).__name__)
        return None


# ---------------------------------------------------------------------------
# Credential check
# ---------------------------------------------------------------------------


def validate_credentials(settings: Settings, username: Any, password: Any) -> bool:
    """Verify login credentials against the configured admin identity."""
    if not isinstance(username, str) or not isinstance(password, str):
        return False
    if not settings.admin_password:
        return False

    # Evaluate both so timing does not reveal which field was wrong
    user_ok = hmac.compare_digest(
        username.encode("utf-8"), settings.admin_username.encode("utf-8")
    )
    pass_ok = hmac.compare_digest(
        password.encode("utf-8"), settings.admin_password.encode("utf-8")
    )
    return user_ok and pass_ok


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


def check_basic_header(authorization: Optional[str], settings: Settings) -> ChannelResult:
    """Evaluate an ``Authorization`` header value as Basic credentials."""
    if not authorization:
        return ChannelResult.not_attempted()

    scheme, _, encoded = authorization.strip().partition(" ")
    if scheme.lower() != "basic":
        return ChannelResult.not_attempted()

    encoded = encoded.strip()
    if not encoded:
        return ChannelResult.failed("empty basic credentials")

    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return ChannelResult.failed("malformed basic credentials")

    username, sep, password = decoded.partition(":")
    if not sep:
        return ChannelResult.failed("basic credentials missing ':' separator")

    if not validate_credentials(settings, username, password):
        return ChannelResult.failed("invalid basic credentials")

    return ChannelResult.authenticated(username)


def check_session_cookie(
    cookie_value: Optional[str], settings: Settings, now: Optional[float] = None
) -> ChannelResult:
    """Evaluate a session cookie value through the token verifier."""
    if not cookie_value:
        return ChannelResult.not_attempted()

    payload = verify_token(settings, cookie_value, now=now)
    if payload is None:
        return ChannelResult.failed("invalid or expired session token")

    return ChannelResult.authenticated(payload.subject)


def combine_channels(
    header: ChannelResult, check_cookie: Callable[[], ChannelResult]
) -> AuthOutcome:
    """Header first; the cookie is only evaluated if the header did not authenticate."""
    if header.ok:
        return AuthOutcome(header=header, cookie=ChannelResult.not_attempted())
    return AuthOutcome(header=header, cookie=check_cookie())


def authenticate_request(
    request: Request, settings: Settings, now: Optional[float] = None
) -> AuthOutcome:
    """Run both authentication channels for a request."""
    header = check_basic_header(request.headers.get("authorization"), settings)
    return combine_channels(
        header,
        lambda: check_session_cookie(
            request.cookies.get(settings.cookie_name), settings, now=now
        ),
    )


# ---------------------------------------------------------------------------
# FastAPI integration
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    """Return the ``Settings`` attached to the running application."""
    return request.app.state.settings


def _log_rejection(request: Request, outcome: AuthOutcome) -> None:
    logger.warning(
        "🔒 Rejected {} {} (header: {}, cookie: {})",
        request.method,
        request.url.path,
        outcome.header.reason or outcome.header.status.value,
        outcome.cookie.reason or outcome.cookie.status.value,
    )


def require_admin(request: Request, settings: Settings = Depends(get_settings)) -> str:
    """
    Dependency guarding every privileged route.

    Returns the authenticated username, or raises a 401 before the route
    body (and therefore the content store) is ever reached.
    """
    outcome = authenticate_request(request, settings)
    if not outcome.authenticated:
        _log_rejection(request, outcome)
        raise HTTPException(status_code=401, detail=UNAUTHORIZED_DETAIL)

    logger.debug("🔓 Admin request authenticated: {}", describe_outcome(outcome))
    request.state.admin_user = outcome.subject
    return outcome.subject


class AdminGateRoute(APIRoute):
    """
    Route class that authenticates before FastAPI reads the request body.

    Dependencies only run after the body has been parsed, so a malformed
    payload would otherwise be answered with a 422 instead of a 401.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def gated_handler(request: Request) -> Response:
            outcome = authenticate_request(request, get_settings(request))
            if not outcome.authenticated:
                _log_rejection(request, outcome)
                return JSONResponse(status_code=401, content={"detail": UNAUTHORIZED_DETAIL})
            return await handler(request)

        return gated_handler


def get_current_user(request: Request, settings: Settings) -> Optional[str]:
    """Return the admin username from the session cookie, or None."""
    result = check_session_cookie(request.cookies.get(settings.cookie_name), settings)
    return result.subject if result.ok else None


def set_session_cookie(
    response: Response, settings: Settings, username: str, now: Optional[float] = None
) -> str:
    """Issue a token for *username* and set it as the session cookie."""
    token = issue_token(settings, username, now=now)
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return token


def clear_session_cookie(response: Response, settings: Settings) -> None:
    """Remove the session cookie."""
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def describe_outcome(outcome: AuthOutcome) -> Dict[str, Any]:
    """Summarise an ``AuthOutcome`` for debug logging (never includes secrets)."""
    return {
        "authenticated": outcome.authenticated,
        "channel": outcome.channel,
        "header": outcome.header.status.value,
        "cookie": outcome.cookie.status.value,
    }
