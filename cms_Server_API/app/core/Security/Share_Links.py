# Share_Links.py
# Description: Issuing and validating temporary share links for the private site preview.
#
# Two families of credentials are handled here:
#   - Long share tokens: stateless JWTs, valid until they expire, never revocable.
#   - Short codes: either legacy self-signed codes (`<prefix>-<base36 expiry>.<signature>`)
#     or random store-backed codes whose ShareLinkRecord can be revoked or extended.
#
# Imports
import base64
import hashlib
import hmac
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
#
# 3rd-party Libraries
from loguru import logger
from pydantic import BaseModel
#
# Local Imports
from cms_Server_API.app.core.DB_Management.Document_Store import (
    ConflictError, DocumentStore, InputError, utc_now
)
from cms_Server_API.app.core.Security.Security import (
    TokenScope, create_scoped_token, decode_scoped_token
)
#
########################################################################################################################
#
# Constants:

SHARE_LINK_AUDIENCE = "share-link"
SHARE_LINK_SUBJECT = "site-share"
SHARE_CODE_ALPHABET = "23456789abcdefghijkmnpqrstuvwxyz"
SHARE_CODE_MIN_LENGTH = 3
SHARE_CODE_MAX_LENGTH = 8
SHARE_CODE_SIGNATURE_LENGTH = 6
SHARE_CODE_ISSUE_ATTEMPTS = 8
SHARE_LINK_MAX_TTL_HOURS = 168
TOKEN_ID_LENGTH = 12

_BARE_CODE_RE = re.compile(rf"^[{SHARE_CODE_ALPHABET}]{{{SHARE_CODE_MIN_LENGTH},{SHARE_CODE_MAX_LENGTH}}}$")
_BASE36_DIGITS = string.digits + string.ascii_lowercase
_TOKEN_ID_ALPHABET = string.ascii_letters + string.digits + "_-"


########################################################################################################################
#
# Exceptions:

class ShareLinkError(Exception):
    """Base exception for share link errors."""
    pass


class ShareLinkNotFoundError(ShareLinkError):
    pass


class ShareLinkStateError(ShareLinkError):
    """Raised when a record cannot be changed in its current state (revoked, permanent)."""
    pass


class ShareLinkIssueError(ShareLinkError):
    """Raised when no unused short code could be generated."""
    pass


########################################################################################################################
#
# Result models:

class ShareLinkStatus(BaseModel):
    valid: bool
    expires_at: Optional[datetime] = None


class ShortCodeCheck(BaseModel):
    """Outcome of the stateless (signature-only) inspection of a short code."""
    valid: bool
    expires_at: Optional[datetime] = None
    legacy: bool = False
    expired: bool = False


class IssuedShareToken(BaseModel):
    token: str
    expires_at: datetime


########################################################################################################################
#
# Helper Functions:

def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding only supports non-negative integers")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def sign_short_payload(payload: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")[:SHARE_CODE_SIGNATURE_LENGTH]


def generate_short_code(length: int) -> str:
    length = min(max(length, SHARE_CODE_MIN_LENGTH), SHARE_CODE_MAX_LENGTH)
    return "".join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(length))


########################################################################################################################
#
# Link issuer:

class LinkIssuer:
    """
    Issues and validates share credentials.

    Store-backed records live in the share-link DocumentStore (keyed by `code`);
    everything else is derived from `secret`.
    """

    def __init__(self, store: DocumentStore, secret: str, prefix: str = "share", code_length: int = 4,
                 issuer: str = "site-cms", clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._secret = secret
        self.prefix = prefix
        self.code_length = min(max(code_length, SHARE_CODE_MIN_LENGTH), SHARE_CODE_MAX_LENGTH)
        self.scope = TokenScope(issuer=issuer, audience=SHARE_LINK_AUDIENCE, subject=SHARE_LINK_SUBJECT)
        self._clock = clock

    # --- Long tokens ---
    def create_share_token(self, expires_in: timedelta) -> IssuedShareToken:
        token_id = "".join(secrets.choice(_TOKEN_ID_ALPHABET) for _ in range(TOKEN_ID_LENGTH))
        token, expires_at = create_scoped_token(self._secret, self.scope, expires_in,
                                                now=self._clock(), extra_claims={"jti": token_id})
        return IssuedShareToken(token=token, expires_at=expires_at)

    def verify_share_token(self, token: str) -> ShareLinkStatus:
        result = decode_scoped_token(token, self._secret, self.scope)
        return ShareLinkStatus(valid=result.valid, expires_at=result.expires_at)

    # --- Legacy signed short codes ---
    def create_legacy_code(self, expires_at: datetime) -> str:
        payload = to_base36(int(expires_at.timestamp()))
        return f"{self.prefix}-{payload}.{sign_short_payload(payload, self._secret)}"

    def inspect_short_code(self, code: str) -> ShortCodeCheck:
        """
        Checks a short code using only the secret and the code string.

        Bare codes (no prefix) only get a format check here; whether they are live is
        decided by their record.
        """
        if not code:
            return ShortCodeCheck(valid=False)
        if not code.startswith(f"{self.prefix}-"):
            return ShortCodeCheck(valid=bool(_BARE_CODE_RE.match(code)))

        raw = code[len(self.prefix) + 1:]
        last_dot = raw.rfind(".")
        if last_dot <= 0:
            return ShortCodeCheck(valid=False, legacy=True)
        payload, signature = raw[:last_dot], raw[last_dot + 1:]
        if not signature:
            return ShortCodeCheck(valid=False, legacy=True)
        if not hmac.compare_digest(signature, sign_short_payload(payload, self._secret)):
            logger.debug("Rejected short code with a bad signature")
            return ShortCodeCheck(valid=False, legacy=True)

        try:
            expires_at = datetime.fromtimestamp(int(payload.split(".")[0], 36), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return ShortCodeCheck(valid=False, legacy=True)

        return ShortCodeCheck(valid=True, expires_at=expires_at, legacy=True,
                              expired=expires_at <= self._clock())

    async def validate_short_code(self, code: str) -> ShareLinkStatus:
        """Signature check first, then the record (if any) decides."""
        check = self.inspect_short_code(code)
        if not check.valid:
            return ShareLinkStatus(valid=False, expires_at=check.expires_at)

        record = await self.store.get_by_key(code)
        if record is None:
            return ShareLinkStatus(valid=check.legacy and not check.expired, expires_at=check.expires_at)
        if record.get("revokedAt"):
            return ShareLinkStatus(valid=False, expires_at=record.get("expiresAt"))

        expires_at = record.get("expiresAt")
        if expires_at is not None and expires_at <= self._clock():
            return ShareLinkStatus(valid=False, expires_at=expires_at)
        return ShareLinkStatus(valid=True, expires_at=expires_at or check.expires_at)

    # --- Store-backed short codes ---
    async def create_short_link(self, ttl_hours: Optional[int] = None, permanent: bool = False,
                                note: Optional[str] = None) -> Dict[str, Any]:
        if not permanent:
            if ttl_hours is None:
                raise InputError("Either a TTL or a permanent link is required")
            if not 1 <= ttl_hours <= SHARE_LINK_MAX_TTL_HOURS:
                raise InputError(f"TTL must be between 1 and {SHARE_LINK_MAX_TTL_HOURS} hours")

        for attempt in range(SHARE_CODE_ISSUE_ATTEMPTS):
            code = generate_short_code(self.code_length)
            expires_at = None if permanent else self._clock() + timedelta(hours=ttl_hours)
            try:
                record = await self.store.create({"code": code, "note": note, "expiresAt": expires_at})
            except ConflictError:
                logger.debug(f"Short code collision on attempt {attempt + 1}, retrying")
                continue
            logger.info(f"Issued share link {'(permanent)' if permanent else f'for {ttl_hours}h'}")
            return record

        logger.error(f"Could not issue a unique share code after {SHARE_CODE_ISSUE_ATTEMPTS} attempts")
        raise ShareLinkIssueError("Could not create a new share link, try again")

    async def revoke(self, code: str) -> bool:
        """Marks the record revoked. Returns False when there is no such record."""
        record = await self.store.get_by_key(code)
        if record is None:
            return False
        if record.get("revokedAt") is None:
            await self.store.update_by_key(code, {"revokedAt": self._clock()})
            logger.info("Share link revoked")
        return True

    async def extend(self, code: str, hours: int) -> Dict[str, Any]:
        if not 1 <= hours <= SHARE_LINK_MAX_TTL_HOURS:
            raise InputError(f"Extension must be between 1 and {SHARE_LINK_MAX_TTL_HOURS} hours")
        record = await self.store.get_by_key(code)
        if record is None:
            raise ShareLinkNotFoundError("Share link not found")
        if record.get("revokedAt"):
            raise ShareLinkStateError("A revoked share link cannot be extended")
        if record.get("expiresAt") is None:
            raise ShareLinkStateError("A permanent share link cannot be extended")

        now = self._clock()
        new_expiry = max(record["expiresAt"], now) + timedelta(hours=hours)
        updated = await self.store.update_by_key(code, {"expiresAt": new_expiry})
        if updated is None:
            raise ShareLinkNotFoundError("Share link not found")
        return updated

    async def list_links(self) -> List[Dict[str, Any]]:
        """All share-link records, newest first."""
        links = await self.store.list()
        return sorted(links, key=lambda link: link["createdAt"], reverse=True)

#
# End of Share_Links.py
########################################################################################################################
