# app/api/v1/endpoints/admin_access.py
# Description: Admin login / logout / session status.
#
# Imports
#
# 3rd-party Libraries
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from loguru import logger
#
# Local Imports
from cms_Server_API.app.api.v1.API_Deps.Content_Deps import (
    get_session_guard, request_client_id, request_is_secure
)
from cms_Server_API.app.api.v1.schemas.admin_schemas import (
    AdminLoginRequest, AdminLoginResponse, AdminStatusResponse, SuccessResponse
)
from cms_Server_API.app.core.AuthNZ.Admin_Session import (
    ADMIN_COOKIE_NAME, AuthError, InsecureTransportError, InvalidCredentialsError, LoginDisabledError,
    SessionGuard, TooManyAttemptsError
)
from cms_Server_API.app.core.DB_Management.Document_Store import to_wire_date
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


def handle_auth_errors(e: Exception):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, (LoginDisabledError, InsecureTransportError)):
        logger.warning(f"Admin login refused: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, TooManyAttemptsError):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e),
                            headers={"Retry-After": str(e.retry_after_seconds)})
    if isinstance(e, InvalidCredentialsError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    if isinstance(e, AuthError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.exception(f"Unexpected error during admin authentication: {e}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail="An unexpected error occurred while processing the admin session.")


@router.get("/status", response_model=AdminStatusResponse, summary="Current admin session state")
async def admin_status(request: Request, response: Response,
                       guard: SessionGuard = Depends(get_session_guard)):
    session_status = guard.status(request.cookies.get(ADMIN_COOKIE_NAME))
    if session_status.renewed is not None:
        response.set_cookie(**guard.session_cookie(session_status.renewed, request_is_secure(request)))
    return AdminStatusResponse(
        authenticated=session_status.authenticated,
        expiresAt=to_wire_date(session_status.expires_at) if session_status.expires_at else None,
        loginDisabled=session_status.login_disabled,
        envIssues=session_status.env_issues,
    )


@router.post("/login", response_model=AdminLoginResponse, summary="Log in with the admin credentials")
async def admin_login(credentials: AdminLoginRequest, request: Request, response: Response,
                      guard: SessionGuard = Depends(get_session_guard)):
    secure = request_is_secure(request)
    try:
        session = await guard.login(credentials.username, credentials.password,
                                    client_id=request_client_id(request), secure=secure)
    except Exception as e:
        handle_auth_errors(e)
    response.set_cookie(**guard.session_cookie(session, secure))
    return AdminLoginResponse(expiresAt=to_wire_date(session.expires_at))


@router.post("/logout", response_model=SuccessResponse, summary="Clear the admin session cookie")
async def admin_logout(request: Request, response: Response,
                       guard: SessionGuard = Depends(get_session_guard)):
    response.delete_cookie(ADMIN_COOKIE_NAME, **guard.cookie_options(request_is_secure(request)))
    return SuccessResponse()

#
# End of admin_access.py
#######################################################################################################################
