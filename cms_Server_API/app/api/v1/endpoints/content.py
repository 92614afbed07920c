# app/api/v1/endpoints/content.py
# Description: Site content collections (public reads, admin-gated mutations) and package history.
#
# Imports
from typing import Any, Dict, List, Optional
#
# 3rd-party Libraries
from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from loguru import logger
#
# Local Imports
from cms_Server_API.app.api.v1.API_Deps.Content_Deps import get_content_db, get_entity_store, require_admin
from cms_Server_API.app.api.v1.schemas.admin_schemas import SuccessResponse
from cms_Server_API.app.api.v1.schemas.content_schemas import DeleteResponse, HistoryRestoreRequest
from cms_Server_API.app.core.DB_Management.Content_DB import ContentDatabase
from cms_Server_API.app.core.DB_Management.Document_Store import (
    ConflictError, ContentStoreError, DocumentStore, InputError, StoreWriteError, revive_dates, to_wire_document
)
#
#######################################################################################################################
#
# Functions:

router = APIRouter()


def handle_content_errors(e: Exception, entity_type: str = "content"):
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, InputError):
        logger.warning(f"Input error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    elif isinstance(e, ConflictError):
        logger.warning(f"Conflict error for {entity_type} (key: {e.key}): {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    elif isinstance(e, StoreWriteError):
        logger.error(f"Write error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=f"Could not save the {entity_type}. No changes were applied.")
    elif isinstance(e, ContentStoreError):
        logger.exception(f"Store error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=f"A storage error occurred while processing your request for {entity_type}.")
    else:
        logger.exception(f"Unexpected error for {entity_type}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=f"An unexpected error occurred while processing your request for {entity_type}.")


def _not_found(store: DocumentStore, ident: Any) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{store.schema.name} '{ident}' not found")


# --- Package history (declared before the generic /{entity}/{doc_id} routes) ---
@router.get("/packages/history", summary="Package history, newest first", tags=["Package History"],
            dependencies=[Depends(require_admin)])
async def list_package_history(package_id: Optional[int] = Query(None, description="Only this package"),
                               db: ContentDatabase = Depends(get_content_db)) -> List[Dict[str, Any]]:
    try:
        if package_id is None:
            entries = await db.package_history.list()
        else:
            entries = await db.package_history.list_for_package(package_id)
        return [to_wire_document(entry) for entry in entries]
    except Exception as e:
        handle_content_errors(e, "package history")


@router.delete("/packages/history", response_model=SuccessResponse, summary="Clear package history",
               tags=["Package History"], dependencies=[Depends(require_admin)])
async def clear_package_history(db: ContentDatabase = Depends(get_content_db)):
    try:
        await db.package_history.clear()
        return SuccessResponse()
    except Exception as e:
        handle_content_errors(e, "package history")


@router.post("/packages/history/restore", summary="Write a history snapshot back into packages",
             tags=["Package History"], dependencies=[Depends(require_admin)])
async def restore_package(body: HistoryRestoreRequest,
                          db: ContentDatabase = Depends(get_content_db)) -> Dict[str, Any]:
    try:
        restored = await db.package_history.restore(revive_dates(body.snapshot), action=body.action)
        return to_wire_document(restored)
    except ValueError as e:
        handle_content_errors(InputError(str(e)), "package")
    except Exception as e:
        handle_content_errors(e, "package")


@router.post("/packages/history/snapshot", summary="Record a snapshot of every package",
             tags=["Package History"], dependencies=[Depends(require_admin)])
async def snapshot_packages(db: ContentDatabase = Depends(get_content_db)) -> List[Dict[str, Any]]:
    try:
        return [to_wire_document(entry) for entry in await db.package_history.snapshot_all()]
    except Exception as e:
        handle_content_errors(e, "package history")


# --- Public reads ---
@router.get("/{entity}", summary="List a content collection")
async def list_documents(visible_only: bool = Query(False, description="Skip documents marked invisible"),
                         store: DocumentStore = Depends(get_entity_store)) -> List[Dict[str, Any]]:
    try:
        documents = await store.list()
        if visible_only:
            documents = [doc for doc in documents if doc.get("visible", True) is not False]
        return [to_wire_document(doc) for doc in documents]
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.get("/{entity}/key/{key}", summary="Get a document by its key")
async def get_document_by_key(key: str, store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        document = await store.get_by_key(key)
        if document is None:
            raise _not_found(store, key)
        return to_wire_document(document)
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.get("/{entity}/{doc_id}", summary="Get a document by id")
async def get_document(doc_id: int, store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        document = await store.get_by_id(doc_id)
        if document is None:
            raise _not_found(store, doc_id)
        return to_wire_document(document)
    except Exception as e:
        handle_content_errors(e, store.schema.name)


# --- Admin mutations ---
@router.post("/{entity}", status_code=status.HTTP_201_CREATED, summary="Create a document",
             dependencies=[Depends(require_admin)])
async def create_document(data: Dict[str, Any] = Body(...),
                          store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        created = await store.create(data)
        logger.info(f"Created {store.schema.name} id={created['id']}")
        return to_wire_document(created)
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.put("/{entity}/key/{key}", summary="Create or replace a keyed document",
            dependencies=[Depends(require_admin)])
async def upsert_document(key: str, data: Dict[str, Any] = Body(...),
                          store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        if not store.schema.key_field:
            raise InputError(f"{store.schema.name} documents are not keyed")
        return to_wire_document(await store.upsert_by_key({**data, store.schema.key_field: key}))
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.patch("/{entity}/key/{key}", summary="Update fields of a keyed document",
              dependencies=[Depends(require_admin)])
async def update_document_by_key(key: str, data: Dict[str, Any] = Body(...),
                                 store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        updated = await store.update_by_key(key, data)
        if updated is None:
            raise _not_found(store, key)
        return to_wire_document(updated)
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.patch("/{entity}/{doc_id}", summary="Update fields of a document",
              dependencies=[Depends(require_admin)])
async def update_document(doc_id: int, data: Dict[str, Any] = Body(...),
                          store: DocumentStore = Depends(get_entity_store)) -> Dict[str, Any]:
    try:
        updated = await store.update(doc_id, data)
        if updated is None:
            raise _not_found(store, doc_id)
        return to_wire_document(updated)
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.delete("/{entity}/key/{key}", response_model=DeleteResponse, summary="Delete a keyed document",
               dependencies=[Depends(require_admin)])
async def delete_document_by_key(key: str, store: DocumentStore = Depends(get_entity_store)):
    try:
        return DeleteResponse(success=await store.delete_by_key(key))
    except Exception as e:
        handle_content_errors(e, store.schema.name)


@router.delete("/{entity}/{doc_id}", response_model=DeleteResponse, summary="Delete a document",
               dependencies=[Depends(require_admin)])
async def delete_document(doc_id: int, store: DocumentStore = Depends(get_entity_store)):
    try:
        return DeleteResponse(success=await store.delete(doc_id))
    except Exception as e:
        handle_content_errors(e, store.schema.name)

#
# End of content.py
#######################################################################################################################
