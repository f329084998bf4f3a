from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.db import get_db
from app.core.tenant import get_current_company_id
from app.models.sale import Sale
from app.schemas.sale import (
    PlannedMovement,
    RefundOut,
    SaleCreate,
    SaleOut,
    SaleWithLedgerOut,
    SettlementPreview,
)
from app.schemas.transaction import TransactionOut
from app.services import sales as svc

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("", response_model=SaleWithLedgerOut, status_code=201)
def create_sale(payload: SaleCreate, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    sale, rows = svc.create_sale(db, company_id, payload)
    return SaleWithLedgerOut(
        sale=SaleOut.model_validate(sale),
        transactions=[TransactionOut.model_validate(r) for r in rows],
    )


@router.post("/preview", response_model=SettlementPreview)
def preview_sale(payload: SaleCreate, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    """Mostra os lançamentos que a venda geraria, sem gravar nada."""
    subtotal, discount, total, planned = svc.preview_settlement(db, company_id, payload)
    return SettlementPreview(
        subtotal=subtotal,
        discount_amount=discount,
        total=total,
        movements=[
            PlannedMovement(
                description=p.description,
                type=p.type.value,
                amount=p.amount,
                origin=p.origin.value,
                category=p.category,
                status=p.status.value,
                due_date=p.due_date,
            )
            for p in planned
        ],
    )


@router.get("", response_model=list[SaleOut])
def list_sales(
    include_refunded: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    q = (
        select(Sale)
        .options(selectinload(Sale.items))
        .where(Sale.company_id == company_id)
        .order_by(Sale.display_id.desc())
        .offset(offset)
        .limit(limit)
    )
    if not include_refunded:
        q = q.where(Sale.status == "active")
    return list(db.scalars(q))


@router.get("/{sale_id}", response_model=SaleWithLedgerOut)
def get_sale(sale_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    sale = svc.get_sale(db, company_id, sale_id)
    rows = svc.sale_transactions(db, company_id, sale_id)
    return SaleWithLedgerOut(
        sale=SaleOut.model_validate(sale),
        transactions=[TransactionOut.model_validate(r) for r in rows],
    )


@router.post("/{sale_id}/refund", response_model=RefundOut)
def refund_sale(sale_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    sale, reversals, skipped = svc.refund_sale(db, company_id, sale_id)
    return RefundOut(
        sale=SaleOut.model_validate(sale),
        reversals=[TransactionOut.model_validate(r) for r in reversals],
        skipped_ids=skipped,
    )
