# app/api/v1/schemas/share_link_schemas.py
#
# Imports
from typing import Optional
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
# Local Imports
#
#######################################################################################################################
#
# Schemas:

class ShareLinkCreate(BaseModel):
    ttlHours: Optional[int] = Field(None, ge=1, le=168, description="Lifetime in hours")
    permanent: Optional[bool] = Field(None, description="Never expires (still revocable)")
    note: Optional[str] = Field(None, max_length=200)


class ShareLinkCreated(BaseModel):
    code: str
    expiresAt: Optional[str] = None
    note: Optional[str] = None
    permanent: bool


class ShareLinkItem(BaseModel):
    code: str
    note: Optional[str] = None
    expiresAt: Optional[str] = None
    createdAt: str
    revokedAt: Optional[str] = None


class ShareLinkCodeRequest(BaseModel):
    code: str = Field(..., min_length=4)


class ShareLinkExtendRequest(ShareLinkCodeRequest):
    hours: int = Field(..., ge=1, le=168)


class ShareLinkExtendResponse(BaseModel):
    expiresAt: Optional[str] = None


class ShareTokenCreate(BaseModel):
    ttlHours: int = Field(..., ge=1, le=168)


class ShareTokenResponse(BaseModel):
    token: str
    expiresAt: str


class ShareLinkValidation(BaseModel):
    valid: bool
    expiresAt: Optional[str] = None
