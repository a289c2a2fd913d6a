import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from golden_keys.config import get_settings
from golden_keys.constants.vocabulary import EXPORT_FILENAME
from golden_keys.schemas import (
    GoldenKey,
    GoldenKeyCreate,
    GoldenKeyFilters,
    GoldenKeyImportResponse,
    GoldenKeyListResponse,
    GoldenKeyUpdate,
    GoldenKeyVocabulary,
)
from golden_keys.services.golden_key_catalog import ConcurrentOperationError
from golden_keys.services.golden_key_codec import GoldenKeyImportError
from golden_keys.services.golden_key_gateway import (
    DuplicateRecordError,
    GatewayError,
    RecordNotFoundError,
)
from golden_keys.services.golden_key_workflow import (
    GoldenKeyNotFoundError,
    GoldenKeyPolicyError,
    GoldenKeyValidationError,
    GoldenKeyWorkflow,
    get_golden_key_workflow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/golden-keys", tags=["Golden Keys"])


def _raise_for_error(exc: Exception) -> NoReturn:
    if isinstance(exc, (GoldenKeyNotFoundError, RecordNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (GoldenKeyPolicyError, DuplicateRecordError, ConcurrentOperationError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, GoldenKeyValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, GoldenKeyImportError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, GatewayError):
        logger.error("Golden key store failure: %s", exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    raise exc


_HANDLED_ERRORS = (
    GoldenKeyNotFoundError,
    GoldenKeyPolicyError,
    GoldenKeyValidationError,
    GoldenKeyImportError,
    ConcurrentOperationError,
    GatewayError,
)


@router.get("", response_model=GoldenKeyListResponse)
def list_golden_keys(
    search: str = Query(""),
    data_type: str = Query("", alias="dataType"),
    owner: str = Query(""),
    approval_status: str = Query("", alias="approvalStatus"),
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKeyListResponse:
    filters = GoldenKeyFilters(
        search=search,
        data_type=data_type,
        owner=owner,
        approval_status=approval_status,
    )
    try:
        return workflow.catalog.view(filters)
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)


@router.get("/vocabulary", response_model=GoldenKeyVocabulary)
def read_vocabulary(
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKeyVocabulary:
    return workflow.vocabulary()


@router.get("/owners", response_model=list[str])
def list_owners(workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow)) -> list[str]:
    try:
        return workflow.catalog.owners()
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)


@router.get("/export")
def export_golden_keys(workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow)) -> Response:
    try:
        document = workflow.catalog.export_document()
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)
    return Response(
        content=document,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.post("/import", response_model=GoldenKeyImportResponse)
async def import_golden_keys(
    file: UploadFile = File(...),
    persist: bool = Query(False),
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKeyImportResponse:
    data = await file.read()
    await file.close()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty.")
    max_bytes = get_settings().max_import_bytes
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Uploaded file exceeds the {max_bytes} byte size limit.",
        )

    try:
        imported = workflow.import_document(data, persist=persist)
        total = len(workflow.catalog.records())
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)
    return GoldenKeyImportResponse(imported=len(imported), persisted=persist, total=total)


@router.post("/reload", response_model=GoldenKeyListResponse)
def reload_golden_keys(workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow)) -> GoldenKeyListResponse:
    try:
        workflow.catalog.reload()
        return workflow.catalog.view()
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_golden_keys(workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow)) -> None:
    workflow.catalog.clear()


@router.post("", response_model=GoldenKey, status_code=status.HTTP_201_CREATED)
def create_golden_key(
    payload: GoldenKeyCreate,
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKey:
    try:
        return workflow.create(payload)
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)


@router.get("/{record_id}", response_model=GoldenKey)
def read_golden_key(
    record_id: str,
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKey:
    try:
        record = workflow.catalog.find(record_id)
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Golden key not found")
    return record


@router.put("/{record_id}", response_model=GoldenKey)
def update_golden_key(
    record_id: str,
    payload: GoldenKeyUpdate,
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> GoldenKey:
    try:
        return workflow.edit(record_id, payload)
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_golden_key(
    record_id: str,
    workflow: GoldenKeyWorkflow = Depends(get_golden_key_workflow),
) -> None:
    try:
        workflow.delete(record_id)
    except _HANDLED_ERRORS as exc:
        _raise_for_error(exc)
