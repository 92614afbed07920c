# app/api/v1/endpoints/share_links.py
# Description: Temporary share links for the private site preview.
#
# Imports
from datetime import timedelta
from typing import Any, Dict, List
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
#
# Local Imports
from cms_Server_API.app.api.v1.API_Deps.Content_Deps import get_link_issuer, require_admin
from cms_Server_API.app.api.v1.schemas.admin_schemas import SuccessResponse
from cms_Server_API.app.api.v1.schemas.share_link_schemas import (
    ShareLinkCodeRequest, ShareLinkCreate, ShareLinkCreated, ShareLinkExtendRequest, ShareLinkExtendResponse,
    ShareLinkItem, ShareLinkValidation, ShareTokenCreate, ShareTokenResponse
)
from cms_Server_API.app.core.DB_Management.Document_Store import ContentStoreError, InputError, to_wire_date
from cms_Server_API.app.core.Security.Share_Links import (
    LinkIssuer, ShareLinkIssueError, ShareLinkNotFoundError, ShareLinkStateError
)
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


def handle_share_link_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, InputError):
        logger.warning(f"Input error for share link: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, ShareLinkNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ShareLinkStateError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, (ShareLinkIssueError, ContentStoreError)):
        logger.exception(f"Share link storage error: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    logger.exception(f"Unexpected share link error: {e}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail="An unexpected error occurred while processing the share link.")


def _wire_or_none(value):
    return to_wire_date(value) if value else None


def _link_item(record: Dict[str, Any]) -> ShareLinkItem:
    return ShareLinkItem(
        code=record["code"],
        note=record.get("note"),
        expiresAt=_wire_or_none(record.get("expiresAt")),
        createdAt=to_wire_date(record["createdAt"]),
        revokedAt=_wire_or_none(record.get("revokedAt")),
    )


# --- Admin endpoints ---
@router.get("/", response_model=List[ShareLinkItem], summary="List share links, newest first",
            dependencies=[Depends(require_admin)])
async def list_share_links(issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        return [_link_item(record) for record in await issuer.list_links()]
    except Exception as e:
        handle_share_link_errors(e)


@router.post("/", response_model=ShareLinkCreated, status_code=status.HTTP_201_CREATED,
             summary="Issue a revocable short share code", dependencies=[Depends(require_admin)])
async def create_share_link(link_in: ShareLinkCreate, issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        record = await issuer.create_short_link(ttl_hours=link_in.ttlHours, permanent=bool(link_in.permanent),
                                                note=link_in.note)
        return ShareLinkCreated(
            code=record["code"],
            expiresAt=_wire_or_none(record.get("expiresAt")),
            note=record.get("note"),
            permanent=record.get("expiresAt") is None,
        )
    except Exception as e:
        handle_share_link_errors(e)


@router.post("/revoke", response_model=SuccessResponse, summary="Revoke a short share code",
             dependencies=[Depends(require_admin)])
async def revoke_share_link(body: ShareLinkCodeRequest, issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        await issuer.revoke(body.code)
        return SuccessResponse()
    except Exception as e:
        handle_share_link_errors(e)


@router.post("/extend", response_model=ShareLinkExtendResponse, summary="Push a share code's expiry out",
             dependencies=[Depends(require_admin)])
async def extend_share_link(body: ShareLinkExtendRequest, issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        record = await issuer.extend(body.code, body.hours)
        return ShareLinkExtendResponse(expiresAt=_wire_or_none(record.get("expiresAt")))
    except Exception as e:
        handle_share_link_errors(e)


@router.post("/token", response_model=ShareTokenResponse, summary="Issue a long, non-revocable share token",
             dependencies=[Depends(require_admin)])
async def create_share_token(body: ShareTokenCreate, issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        issued = issuer.create_share_token(timedelta(hours=body.ttlHours))
        return ShareTokenResponse(token=issued.token, expiresAt=to_wire_date(issued.expires_at))
    except Exception as e:
        handle_share_link_errors(e)


# --- Public endpoints ---
@router.get("/validate", response_model=ShareLinkValidation, summary="Validate a long share token")
async def validate_share_token(token: str = Query(..., min_length=10),
                               issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        result = issuer.verify_share_token(token)
        return ShareLinkValidation(valid=result.valid, expiresAt=_wire_or_none(result.expires_at))
    except Exception as e:
        handle_share_link_errors(e)


@router.get("/validate-short", response_model=ShareLinkValidation, summary="Validate a short share code")
async def validate_short_code(code: str = Query(..., min_length=3, max_length=120),
                              issuer: LinkIssuer = Depends(get_link_issuer)):
    try:
        result = await issuer.validate_short_code(code)
        return ShareLinkValidation(valid=result.valid, expiresAt=_wire_or_none(result.expires_at))
    except Exception as e:
        handle_share_link_errors(e)

#
# End of share_links.py
#######################################################################################################################
