# /cms_Server_API/app/core/Security/Security.py
#
# Description: This file contains helpers for creating/validating scoped JWTs and comparing secrets.
#
# Imports
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

# 3rd-Party Libraries
import jwt # Using PyJWT library (pip install pyjwt)
from loguru import logger
from pydantic import BaseModel

# Local Imports

#######################################################################################################################

# --- Configuration ---

ALGORITHM = "HS256" # Algorithm for signing JWTs


def constant_time_equals(supplied: str, expected: str) -> bool:
    """Compares two secrets without leaking where they differ."""
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


# --- JWT Handling ---

class TokenScope(BaseModel):
    """The issuer / audience / subject triple a token must carry to be accepted."""
    issuer: str
    audience: str
    subject: str


class VerifiedToken(BaseModel):
    valid: bool
    expires_at: Optional[datetime] = None
    claims: Dict[str, Any] = {}


def create_scoped_token(secret: str, scope: TokenScope, expires_in: timedelta,
                        now: Optional[datetime] = None,
                        extra_claims: Optional[Dict[str, Any]] = None) -> tuple:
    """
    Creates a signed JWT bound to `scope`.

    Args:
        secret (str): Symmetric signing key.
        scope (TokenScope): Issuer, audience and subject claims.
        expires_in (timedelta): Token lifetime.
        now (Optional[datetime]): Issue time, defaults to the current UTC time.
        extra_claims (Optional[dict]): Additional claims (e.g. a `jti`).

    Returns:
        tuple: (encoded token, expiry datetime). The expiry is truncated to whole seconds,
               matching what the `exp` claim can represent.
    """
    issued_at = now or datetime.now(timezone.utc)
    expires_at = (issued_at + expires_in).replace(microsecond=0)
    payload = dict(extra_claims or {})
    payload.update({
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        "iss": scope.issuer,
        "aud": scope.audience,
        "sub": scope.subject,
    })
    logger.debug(f"Creating '{scope.audience}' token expiring at {expires_at}")
    return jwt.encode(payload, secret, algorithm=ALGORITHM), expires_at


def decode_scoped_token(token: Optional[str], secret: str, scope: TokenScope) -> VerifiedToken:
    """
    Decodes and validates a JWT against `scope`.

    Every failure (bad signature, expired, wrong issuer/audience/subject, malformed)
    collapses into `VerifiedToken(valid=False)`.
    """
    if not token:
        return VerifiedToken(valid=False)
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            audience=scope.audience,
            issuer=scope.issuer,
            options={"require": ["exp", "iss", "aud", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug(f"'{scope.audience}' token rejected: signature has expired.")
        return VerifiedToken(valid=False)
    except jwt.InvalidSignatureError:
        logger.warning(f"'{scope.audience}' token rejected: invalid signature.")
        return VerifiedToken(valid=False)
    except jwt.InvalidTokenError as e:
        logger.debug(f"'{scope.audience}' token rejected: {e}")
        return VerifiedToken(valid=False)

    if payload.get("sub") != scope.subject:
        logger.debug(f"'{scope.audience}' token rejected: unexpected subject.")
        return VerifiedToken(valid=False)

    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    return VerifiedToken(valid=True, expires_at=expires_at, claims=payload)

#
# End of Security.py
# #####################################################################################################################
