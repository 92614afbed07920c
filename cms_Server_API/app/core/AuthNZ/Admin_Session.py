# Admin_Session.py
# Description: Admin login, stateless session tokens and the session cookie policy.
#
# Imports
import asyncio
import math
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
#
# 3rd-Party Libraries
from loguru import logger
from pydantic import BaseModel
#
# Local Imports
from cms_Server_API.app.core.DB_Management.Document_Store import utc_now
from cms_Server_API.app.core.RateLimiting.Rate_Limit import LoginRateLimiter, backoff_seconds
from cms_Server_API.app.core.Security.Security import (
    TokenScope, constant_time_equals, create_scoped_token, decode_scoped_token
)
#
#######################################################################################################################
#
# Constants:

ADMIN_COOKIE_NAME = "admin_access"
ADMIN_SESSION_AUDIENCE = "admin-panel"
ADMIN_SESSION_SUBJECT = "admin"
SESSION_RENEW_THRESHOLD = timedelta(minutes=5)
SESSION_TTL_MIN_MINUTES = 15
SESSION_TTL_MAX_MINUTES = 720


#######################################################################################################################
#
# Exceptions:

class AuthError(Exception):
    """Base exception for admin authentication errors."""
    pass


class InvalidCredentialsError(AuthError):
    pass


class TooManyAttemptsError(AuthError):
    def __init__(self, retry_after_seconds: int):
        super().__init__(f"Too many attempts. Try again in {retry_after_seconds} seconds.")
        self.retry_after_seconds = retry_after_seconds


class LoginDisabledError(AuthError):
    pass


class InsecureTransportError(AuthError):
    pass


#######################################################################################################################
#
# Models:

class AdminSession(BaseModel):
    token: str
    expires_at: datetime


class SessionState(BaseModel):
    authenticated: bool
    expires_at: Optional[datetime] = None


class SessionStatus(BaseModel):
    authenticated: bool
    expires_at: Optional[datetime] = None
    login_disabled: bool = False
    env_issues: List[str] = []
    # Set when the session was close to expiry and a fresh token was issued.
    renewed: Optional[AdminSession] = None


#######################################################################################################################
#
# Request helpers:

def client_identifier(forwarded_for: Optional[str], peer_host: Optional[str]) -> str:
    """First hop of X-Forwarded-For, else the peer address."""
    if forwarded_for and forwarded_for.strip():
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or "unknown"


def is_secure_transport(scheme: Optional[str], forwarded_proto: Optional[str]) -> bool:
    return scheme == "https" or bool(forwarded_proto and "https" in forwarded_proto)


#######################################################################################################################
#
# Session guard:

class SessionGuard:
    """
    Admin authentication: Unauthenticated -> Authenticated (valid token) -> Unauthenticated.

    Tokens are stateless; logout only clears the client-side cookie, the token itself
    stays valid until it expires.
    """

    def __init__(self, secret: str, admin_user: str, admin_pass: str,
                 rate_limiter: Optional[LoginRateLimiter] = None,
                 ttl_minutes: int = 120,
                 issuer: str = "site-cms-admin",
                 login_disabled: bool = False,
                 require_https: bool = True,
                 is_production: bool = False,
                 env_issues: Sequence[str] = (),
                 clock: Callable[[], datetime] = utc_now,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self._secret = secret
        self._admin_user = admin_user
        self._admin_pass = admin_pass
        self.rate_limiter = rate_limiter or LoginRateLimiter()
        self.ttl = timedelta(minutes=min(max(ttl_minutes, SESSION_TTL_MIN_MINUTES), SESSION_TTL_MAX_MINUTES))
        self.scope = TokenScope(issuer=issuer, audience=ADMIN_SESSION_AUDIENCE, subject=ADMIN_SESSION_SUBJECT)
        self.login_disabled = login_disabled
        self.require_https = require_https
        self.is_production = is_production
        self.env_issues = list(env_issues)
        self._clock = clock
        self.sleep = sleep

    def matches_credentials(self, username: str, password: str) -> bool:
        # Evaluate both so a wrong username costs the same as a wrong password.
        user_ok = constant_time_equals(username, self._admin_user)
        pass_ok = constant_time_equals(password, self._admin_pass)
        return user_ok and pass_ok

    def create_session(self, now: Optional[datetime] = None) -> AdminSession:
        token, expires_at = create_scoped_token(self._secret, self.scope, self.ttl, now=now or self._clock())
        return AdminSession(token=token, expires_at=expires_at)

    def verify_session(self, token: Optional[str]) -> SessionState:
        result = decode_scoped_token(token, self._secret, self.scope)
        return SessionState(authenticated=result.valid, expires_at=result.expires_at)

    async def login(self, username: str, password: str, client_id: str, secure: bool) -> AdminSession:
        if self.login_disabled:
            raise LoginDisabledError("Admin login is disabled by an insecure configuration.")
        if self.require_https and not secure:
            raise InsecureTransportError("Admin login requires HTTPS.")

        rate = self.rate_limiter.check(client_id)
        if not rate.allowed:
            raise TooManyAttemptsError(max(1, math.ceil(rate.retry_after_seconds)))

        if not self.matches_credentials(username, password):
            entry = self.rate_limiter.record_failure(client_id)
            logger.warning(f"[Admin] Failed login from {client_id} (attempt {entry.count})")
            delay = backoff_seconds(entry.count)
            if delay > 0:
                await self.sleep(delay)
            raise InvalidCredentialsError("Invalid credentials")

        session = self.create_session()
        self.rate_limiter.clear(client_id)
        logger.info(f"[Admin] Login from {client_id}")
        return session

    def status(self, token: Optional[str]) -> SessionStatus:
        state = self.verify_session(token)
        expires_at = state.expires_at
        renewed = None
        if state.authenticated and expires_at is not None:
            if expires_at - self._clock() < SESSION_RENEW_THRESHOLD:
                renewed = self.create_session()
                expires_at = renewed.expires_at
                logger.debug("[Admin] Session renewed")
        return SessionStatus(
            authenticated=state.authenticated,
            expires_at=expires_at,
            login_disabled=self.login_disabled,
            env_issues=self.env_issues,
            renewed=renewed,
        )

    def cookie_options(self, secure: bool) -> Dict[str, object]:
        """Keyword arguments for `Response.set_cookie` / `delete_cookie`."""
        strict = secure or self.is_production
        return {
            "httponly": True,
            "path": "/",
            "samesite": "strict" if strict else "lax",
            "secure": strict,
        }

    def session_cookie(self, session: AdminSession, secure: bool) -> Dict[str, object]:
        return {
            "key": ADMIN_COOKIE_NAME,
            "value": session.token,
            "max_age": int(self.ttl.total_seconds()),
            **self.cookie_options(secure),
        }

#
# End of Admin_Session.py
#######################################################################################################################
