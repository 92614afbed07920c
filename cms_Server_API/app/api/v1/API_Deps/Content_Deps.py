# cms_Server_API/app/api/v1/API_Deps/Content_Deps.py
# Description: FastAPI dependencies resolving the per-app services and the admin session.
#
# Imports
#
# 3rd-party Libraries
from fastapi import Depends, HTTPException, Request, status
from loguru import logger
#
# Local Imports
from cms_Server_API.app.core.AuthNZ.Admin_Session import (
    ADMIN_COOKIE_NAME, SessionGuard, SessionState, client_identifier, is_secure_transport
)
from cms_Server_API.app.core.DB_Management.Content_DB import ContentDatabase
from cms_Server_API.app.core.DB_Management.Document_Store import DocumentStore
from cms_Server_API.app.core.Security.Share_Links import LinkIssuer
#
#######################################################################################################################
#
# Functions:

def get_content_db(request: Request) -> ContentDatabase:
    return request.app.state.content_db


def get_link_issuer(request: Request) -> LinkIssuer:
    return request.app.state.link_issuer


def get_session_guard(request: Request) -> SessionGuard:
    return request.app.state.session_guard


def get_entity_store(entity: str, db: ContentDatabase = Depends(get_content_db)) -> DocumentStore:
    try:
        return db.store(entity)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown content type '{entity}'")


def request_is_secure(request: Request) -> bool:
    return is_secure_transport(request.url.scheme, request.headers.get("x-forwarded-proto"))


def request_client_id(request: Request) -> str:
    peer = request.client.host if request.client else None
    return client_identifier(request.headers.get("x-forwarded-for"), peer)


def require_admin(request: Request, guard: SessionGuard = Depends(get_session_guard)) -> SessionState:
    """Rejects the request unless it carries a valid admin session cookie."""
    state = guard.verify_session(request.cookies.get(ADMIN_COOKIE_NAME))
    if not state.authenticated:
        logger.debug(f"Admin access denied for {request.method} {request.url.path}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Admin access required")
    return state

#
# End of Content_Deps.py
#######################################################################################################################
