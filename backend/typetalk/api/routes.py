"""
Document API Routes

Client-facing document endpoints. Every call is admitted or refused by the
TypeTalk rule set through AccessService.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from typetalk.auth.firebase_auth import get_identity
from typetalk.core.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from typetalk.rules.models import Identity, Operation
from typetalk.rules.values import to_jsonable, with_server_timestamps
from typetalk.schemas.models import (
    DocumentListResponse,
    DocumentResponse,
    DocumentWrite,
    EvaluateRequest,
    EvaluateResponse,
)
from typetalk.services.access_service import AccessService, get_access_service

router = APIRouter()


def _forbidden(exc: PermissionDeniedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/rules/evaluate", response_model=EvaluateResponse)
def evaluate_rules(
    payload: EvaluateRequest,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> EvaluateResponse:
    """Dry-run an operation against the rule set without touching any data."""
    try:
        operation = Operation(payload.operation)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown operation: {payload.operation}",
        )

    data: Optional[dict] = None
    if payload.data is not None:
        data = with_server_timestamps(payload.data, payload.server_timestamps)

    try:
        decision = service.check(
            identity,
            operation,
            payload.collection,
            document_id=payload.document_id,
            data=data,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return EvaluateResponse(decision=decision.value, allowed=decision.allowed)


@router.get("/collections/{collection}", response_model=DocumentListResponse)
def list_documents(
    collection: str,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> DocumentListResponse:
    """List a collection (only where the read rule does not depend on content)."""
    try:
        docs = service.list_documents(identity, collection)
    except PermissionDeniedError as e:
        raise _forbidden(e)

    return DocumentListResponse(
        collection=collection,
        documents=[
            DocumentResponse(id=doc_id, collection=collection, data=to_jsonable(data))
            for doc_id, data in docs
        ],
    )


@router.get("/collections/{collection}/{document_id}", response_model=DocumentResponse)
def get_document(
    collection: str,
    document_id: str,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> DocumentResponse:
    try:
        data = service.get_document(identity, collection, document_id)
    except PermissionDeniedError as e:
        raise _forbidden(e)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return DocumentResponse(id=document_id, collection=collection, data=to_jsonable(data))


@router.post(
    "/collections/{collection}/{document_id}",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_document(
    collection: str,
    document_id: str,
    payload: DocumentWrite,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> DocumentResponse:
    """Create a document. Fields named in server_timestamps are set by the server."""
    data = with_server_timestamps(payload.data, payload.server_timestamps)
    try:
        service.create_document(identity, collection, document_id, data)
        stored = service.get_document(identity, collection, document_id)
    except PermissionDeniedError as e:
        raise _forbidden(e)
    except DocumentExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return DocumentResponse(id=document_id, collection=collection, data=to_jsonable(stored))


@router.patch("/collections/{collection}/{document_id}", response_model=DocumentResponse)
def update_document(
    collection: str,
    document_id: str,
    payload: DocumentWrite,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> DocumentResponse:
    """Apply a field patch to an existing document."""
    patch = with_server_timestamps(payload.data, payload.server_timestamps)
    try:
        service.update_document(identity, collection, document_id, patch)
        stored = service.get_document(identity, collection, document_id)
    except PermissionDeniedError as e:
        raise _forbidden(e)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except DocumentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return DocumentResponse(id=document_id, collection=collection, data=to_jsonable(stored))


@router.delete("/collections/{collection}/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    collection: str,
    document_id: str,
    identity: Identity = Depends(get_identity),
    service: AccessService = Depends(get_access_service),
) -> None:
    try:
        service.delete_document(identity, collection, document_id)
    except PermissionDeniedError as e:
        raise _forbidden(e)
