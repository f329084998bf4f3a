from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db import get_db
from app.api import reports as rep
from app.core.tenant import get_current_company_id
from app.ledger.errors import RecordNotFoundError
from app.ledger.operations import amend_movement, record_movement, record_reversal, settle_movement, summarize
from app.ledger.store import SqlRecordStore
from app.ledger.types import Origin, RecordFilters, ReferenceType, Status, TransactionRecordInput, TransactionType
from app.models.transaction import Transaction
from app.schemas.transaction import AmendOut, BalanceOut, TransactionAmend, TransactionCreate, TransactionOut

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _get_or_404(store: SqlRecordStore, company_id: int, tx_id: int) -> Transaction:
    tx = store.get(company_id, tx_id)
    if tx is None:
        raise RecordNotFoundError("Transacao nao existe para essa empresa", record_id=tx_id)
    return tx


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(payload: TransactionCreate, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    store = SqlRecordStore(db)
    return record_movement(
        store,
        TransactionRecordInput(
            company_id=company_id,
            description=payload.description,
            type=TransactionType(payload.type),
            amount=payload.amount,
            reference_type=ReferenceType(payload.reference_type),
            origin=Origin.MANUAL,
            category=payload.category,
            status=Status(payload.status),
            due_date=payload.due_date,
        ),
    )


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    start: str | None = Query(None, description="YYYY-MM-DD ou ISO datetime"),
    end: str | None = Query(None, description="YYYY-MM-DD ou ISO datetime"),
    type: TransactionType | None = None,
    status: Status | None = None,
    reference_type: ReferenceType | None = None,
    origin: Origin | None = None,
    category: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    filters = RecordFilters(
        start=rep._parse_iso_date_or_datetime(start, is_end=False) if start else None,
        end=rep._parse_iso_date_or_datetime(end, is_end=True) if end else None,
        type=type,
        status=status,
        reference_type=reference_type,
        origin=origin,
        category=category,
        limit=limit,
        offset=offset,
    )
    return SqlRecordStore(db).query_by_company(company_id, filters)


@router.get("/balance", response_model=BalanceOut)
def balance(db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    """Saldo = replay de todos os lançamentos da empresa (pending não conta)."""
    totals = summarize(SqlRecordStore(db).query_by_company(company_id))
    return BalanceOut(
        company_id=company_id,
        balance=totals.balance,
        income_paid=totals.income_paid,
        expense_paid=totals.expense_paid,
        pending_receivables=totals.pending_receivables,
        pending_payables=totals.pending_payables,
        qtd_transacoes=totals.count,
    )


@router.get("/{tx_id}", response_model=TransactionOut)
def get_transaction(tx_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    return _get_or_404(SqlRecordStore(db), company_id, tx_id)


@router.get("/{tx_id}/reversal", response_model=TransactionOut)
def get_reversal(tx_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    store = SqlRecordStore(db)
    _get_or_404(store, company_id, tx_id)
    found = store.query_by_reference(company_id, str(tx_id), ReferenceType.REVERSAL)
    if not found:
        raise RecordNotFoundError("lançamento não possui estorno", record_id=tx_id)
    return found[0]


@router.post("/{tx_id}/reverse", response_model=TransactionOut, status_code=201)
def reverse_transaction(tx_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    store = SqlRecordStore(db)
    return record_reversal(store, _get_or_404(store, company_id, tx_id))


@router.put("/{tx_id}", response_model=AmendOut)
def amend_transaction(
    tx_id: int,
    payload: TransactionAmend,
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    store = SqlRecordStore(db)
    original = _get_or_404(store, company_id, tx_id)
    reversal, replacement = amend_movement(
        store,
        original,
        TransactionRecordInput(
            company_id=company_id,
            description=payload.description,
            type=TransactionType(payload.type),
            amount=payload.amount,
            origin=Origin.MANUAL,
            category=payload.category,
            status=Status(payload.status),
            due_date=payload.due_date,
        ),
    )
    return AmendOut(
        reversal=TransactionOut.model_validate(reversal),
        replacement=TransactionOut.model_validate(replacement),
    )


@router.post("/{tx_id}/settle", response_model=TransactionOut)
def settle_transaction(tx_id: int, db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id)):
    store = SqlRecordStore(db)
    return settle_movement(store, _get_or_404(store, company_id, tx_id))
