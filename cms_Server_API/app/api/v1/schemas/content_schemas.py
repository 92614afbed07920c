# app/api/v1/schemas/content_schemas.py
#
# Imports
from typing import Any, Dict, Literal
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
# Local Imports
#
#######################################################################################################################
#
# Schemas:

# Entity documents are validated by each collection's EntitySchema, so the bodies are plain dicts here.

class HistoryRestoreRequest(BaseModel):
    snapshot: Dict[str, Any] = Field(..., description="A package snapshot taken from a history entry")
    action: Literal["restore", "update"] = "restore"


class DeleteResponse(BaseModel):
    success: bool
