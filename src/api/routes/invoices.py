"""
Invoice endpoints: batch upload, listing, retrieval and deletion.
"""

from datetime import date

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import ValidationError as RequestModelError

from src.api.dependencies import get_process_invoices_use_case, get_repository, get_storage
from src.application.dto.requests import ListInvoicesRequest, UploadInvoicesRequest
from src.application.dto.responses import (
    BatchUploadResponse,
    ErrorResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceSummaryResponse,
)
from src.application.use_cases import IncomingFile, ProcessInvoicesUseCase
from src.config import get_logger
from src.core.exceptions import InvoiceNotFoundError
from src.core.interfaces import IFileStorage, IInvoiceRepository

logger = get_logger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.post(
    "/upload",
    response_model=BatchUploadResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Too many files or no files"},
    },
)
async def upload_invoices(
    files: list[UploadFile] = File(...),
    validate: bool = Query(True, description="Run validation rules"),
    check_duplicates: bool = Query(True, description="Flag possible duplicates"),
    use_case: ProcessInvoicesUseCase = Depends(get_process_invoices_use_case),
) -> BatchUploadResponse:
    """
    Upload and process a batch of invoice documents.

    Every file gets its own outcome; one bad file never fails the batch.
    """
    options = UploadInvoicesRequest(
        enable_validation=validate,
        enable_duplicate_detection=check_duplicates,
    )

    incoming = []
    for upload in files:
        try:
            content = await upload.read()
        finally:
            await upload.close()
        incoming.append(IncomingFile(file_name=upload.filename or "", content=content))

    result = await use_case.process_batch(
        incoming,
        enable_validation=options.enable_validation,
        enable_duplicate_detection=options.enable_duplicate_detection,
    )
    return BatchUploadResponse.from_batch(result)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    vendor_name: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    repository: IInvoiceRepository = Depends(get_repository),
) -> InvoiceListResponse:
    """List invoices, most recently processed first."""
    try:
        request = ListInvoicesRequest(
            page=page,
            page_size=page_size,
            vendor_name=vendor_name,
            date_from=from_date,
            date_to=to_date,
        )
    except RequestModelError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="from_date must not be after to_date",
        )

    filters = {
        "vendor_name": request.vendor_name,
        "date_from": request.date_from,
        "date_to": request.date_to,
    }
    invoices = await repository.get_all(page=request.page, page_size=request.page_size, **filters)
    total = await repository.count(**filters)

    return InvoiceListResponse(
        total=total,
        page=request.page,
        page_size=request.page_size,
        has_more=request.page * request.page_size < total,
        invoices=[InvoiceSummaryResponse.from_entity(inv) for inv in invoices],
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Invoice not found"},
    },
)
async def get_invoice(
    invoice_id: str,
    repository: IInvoiceRepository = Depends(get_repository),
) -> InvoiceResponse:
    """Get invoice by ID with line items and validation findings."""
    invoice = await repository.get_by_id(invoice_id)
    if invoice is None:
        raise InvoiceNotFoundError(invoice_id)
    return InvoiceResponse.from_entity(invoice)


@router.delete(
    "/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"model": ErrorResponse, "description": "Invoice not found"},
    },
)
async def delete_invoice(
    invoice_id: str,
    repository: IInvoiceRepository = Depends(get_repository),
    storage: IFileStorage = Depends(get_storage),
) -> None:
    """Delete an invoice and its stored file."""
    invoice = await repository.get_by_id(invoice_id)
    if invoice is None or not await repository.delete(invoice_id):
        raise InvoiceNotFoundError(invoice_id)

    if invoice.file_path and not await storage.delete(invoice.file_path):
        logger.warning("stored_file_missing", invoice_id=invoice_id, path=invoice.file_path)
