"""Fee collection router: post payments against invoices, list and inspect invoices."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import FeeInvoiceStatus
from app.core.exceptions import ServiceError, not_found
from app.db.session import get_db

from .schemas import (
    FeeInvoiceResponse,
    InvoiceTransactionsResponse,
    PaymentPostRequest,
    PaymentPostResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-collection", tags=["fee-collection"])


@router.post(
    "",
    response_model=PaymentPostResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def post_payment(
    payload: PaymentPostRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentPostResponse:
    try:
        return await service.post_payment(
            db,
            payload,
            performed_by=current_user.id,
            performed_by_email=current_user.email,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "",
    response_model=List[FeeInvoiceResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_invoices(
    invoice_status: Optional[FeeInvoiceStatus] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    fee_structure_id: Optional[UUID] = Query(None),
    semester_number: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
) -> List[FeeInvoiceResponse]:
    return await service.list_invoices(
        db,
        status_filter=invoice_status,
        student_id=student_id,
        fee_structure_id=fee_structure_id,
        semester_number=semester_number,
    )


@router.get(
    "/{invoice_id}",
    response_model=FeeInvoiceResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_invoice(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeInvoiceResponse:
    result = await service.get_invoice(db, invoice_id)
    if not result:
        raise not_found("Invoice not found")
    return result


@router.get(
    "/{invoice_id}/transactions",
    response_model=InvoiceTransactionsResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_invoice_transactions(
    invoice_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> InvoiceTransactionsResponse:
    result = await service.list_invoice_transactions(db, invoice_id)
    if not result:
        raise not_found("Invoice not found")
    return result
