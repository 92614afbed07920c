# app/api/v1/schemas/admin_schemas.py
#
# Imports
from typing import List, Optional
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
# Local Imports
#
#######################################################################################################################
#
# Schemas:

class AdminLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AdminLoginResponse(BaseModel):
    success: bool = True
    expiresAt: str = Field(..., description="Session expiry (ISO 8601, UTC)")


class AdminStatusResponse(BaseModel):
    authenticated: bool
    expiresAt: Optional[str] = None
    loginDisabled: bool = False
    envIssues: List[str] = Field(default_factory=list, description="Insecure production settings, if any")


class SuccessResponse(BaseModel):
    success: bool = True
