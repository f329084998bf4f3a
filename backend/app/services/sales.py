from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.core.settings import settings
from app.ledger.errors import RecordNotFoundError, SaleAlreadyRefundedError
from app.ledger.operations import record_reversal
from app.ledger.settlement import SaleLine, SaleSnapshot, plan_sale_movements
from app.ledger.store import SqlRecordStore
from app.ledger.types import ZERO, ReferenceType, TransactionRecordInput, to_money
from app.models.sale import Sale, SaleItem
from app.models.transaction import Transaction, utcnow
from app.schemas.sale import SaleCreate

logger = logging.getLogger(__name__)


def _planner_options() -> dict:
    return {
        "interval_days": settings.LEDGER_INSTALLMENT_INTERVAL_DAYS,
        "zero_subtotal_product_ratio": Decimal(str(settings.LEDGER_ZERO_SUBTOTAL_PRODUCT_RATIO)),
        "immediate_methods": settings.immediate_payment_methods,
    }


def compute_totals(payload: SaleCreate) -> Tuple[Decimal, Decimal, Decimal]:
    """subtotal, desconto efetivo (limitado ao subtotal), total.
    O schema garante: itens OU total informado, nunca os dois."""
    if payload.items:
        subtotal = sum((to_money(to_money(i.unit_price) * i.quantity) for i in payload.items), ZERO)
    else:
        subtotal = to_money(payload.total or ZERO)

    if payload.discount_percent is not None:
        discount = to_money(subtotal * to_money(payload.discount_percent) / Decimal(100))
    else:
        discount = to_money(payload.discount_amount or ZERO)
    discount = min(discount, subtotal)
    return subtotal, discount, subtotal - discount


def _next_display_id(db: Session, company_id: int) -> int:
    cur = db.scalar(select(func.max(Sale.display_id)).where(Sale.company_id == company_id))
    return int(cur or 0) + 1


def snapshot_of(sale: Sale, lines: List[SaleLine]) -> SaleSnapshot:
    return SaleSnapshot(
        id=sale.id,
        company_id=sale.company_id,
        display_id=sale.display_id,
        customer=sale.customer,
        date=sale.date,
        total=sale.total,
        payment_method=sale.payment_method,
        installment_count=sale.installment_count,
        down_payment=sale.down_payment,
        lines=tuple(lines),
    )


def _lines(payload: SaleCreate) -> List[SaleLine]:
    return [SaleLine(kind=i.kind, unit_price=i.unit_price, quantity=i.quantity) for i in payload.items]


def preview_settlement(
    db: Session, company_id: int, payload: SaleCreate
) -> Tuple[Decimal, Decimal, Decimal, List[TransactionRecordInput]]:
    subtotal, discount, total = compute_totals(payload)
    snap = SaleSnapshot(
        id=0,
        company_id=company_id,
        display_id=_next_display_id(db, company_id),
        customer=payload.customer,
        date=payload.date,
        total=total,
        payment_method=payload.payment_method,
        installment_count=payload.installment_count,
        down_payment=payload.down_payment,
        lines=tuple(_lines(payload)),
    )
    return subtotal, discount, total, plan_sale_movements(snap, **_planner_options())


def create_sale(db: Session, company_id: int, payload: SaleCreate) -> Tuple[Sale, List[Transaction]]:
    """
    Grava venda + itens + liquidação numa única transação do banco.
    Se qualquer lançamento falhar, nada fica gravado (sem liquidação parcial).
    """
    subtotal, discount, total = compute_totals(payload)
    store = SqlRecordStore(db)

    with store.transaction():
        sale = Sale(
            company_id=company_id,
            display_id=_next_display_id(db, company_id),
            customer=payload.customer.strip(),
            date=payload.date,
            subtotal=subtotal,
            discount_amount=discount,
            discount_percent=payload.discount_percent,
            total=total,
            payment_method=payload.payment_method.strip(),
            installment_count=payload.installment_count,
            down_payment=to_money(payload.down_payment),
            status="active",
        )
        for item in payload.items:
            sale.items.append(
                SaleItem(
                    company_id=company_id,
                    kind=item.kind,
                    item_ref=item.item_ref,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=to_money(item.unit_price),
                    total_price=to_money(to_money(item.unit_price) * item.quantity),
                )
            )
        db.add(sale)
        db.flush()

        planned = plan_sale_movements(snapshot_of(sale, _lines(payload)), **_planner_options())
        rows = store.append_batch([p.validated() for p in planned])

    logger.info(
        "sale created company_id=%s sale_id=%s display_id=%s total=%s records=%s",
        company_id, sale.id, sale.display_id, sale.total, len(rows),
    )
    return sale, rows


def get_sale(db: Session, company_id: int, sale_id: int) -> Sale:
    sale = db.scalar(
        select(Sale)
        .options(selectinload(Sale.items))
        .where(Sale.id == sale_id)
        .where(Sale.company_id == company_id)
    )
    if sale is None:
        raise RecordNotFoundError("venda não encontrada", sale_id=sale_id)
    return sale


def sale_transactions(db: Session, company_id: int, sale_id: int) -> List[Transaction]:
    """Lançamentos da venda + os estornos deles, em ordem de gravação."""
    store = SqlRecordStore(db)
    originals = store.query_by_reference(company_id, str(sale_id), ReferenceType.SALE)
    out = list(originals)
    for tx in originals:
        out.extend(store.query_by_reference(company_id, str(tx.id), ReferenceType.REVERSAL))
    return sorted(out, key=lambda t: t.id)


def _live_records(store: SqlRecordStore, company_id: int, tx: Transaction, skipped: List[int]) -> List[Transaction]:
    """
    Lançamentos ainda sem estorno que representam `tx`: ele mesmo, ou, se já foi
    estornado, os substitutos da edição (manual com reference_id=<tx.id>), em cadeia.
    """
    if not store.query_by_reference(company_id, str(tx.id), ReferenceType.REVERSAL):
        return [tx]
    skipped.append(tx.id)
    out: List[Transaction] = []
    for replacement in store.query_by_reference(company_id, str(tx.id), ReferenceType.MANUAL):
        out.extend(_live_records(store, company_id, replacement, skipped))
    return out


def refund_sale(db: Session, company_id: int, sale_id: int) -> Tuple[Sale, List[Transaction], List[int]]:
    """
    Estorna todos os lançamentos da venda e marca a venda como refunded.
    Lançamentos que já têm estorno são pulados (skipped_ids); se vieram de uma
    edição, o lançamento substituto é estornado no lugar.
    Venda e estornos entram juntos; falha no meio desfaz tudo.
    """
    sale = get_sale(db, company_id, sale_id)
    if sale.status == "refunded":
        raise SaleAlreadyRefundedError("venda já estornada", sale_id=sale_id)

    store = SqlRecordStore(db)
    reversals: List[Transaction] = []
    skipped: List[int] = []

    with store.transaction():
        for tx in store.query_by_reference(company_id, str(sale.id), ReferenceType.SALE):
            for live in _live_records(store, company_id, tx, skipped):
                reversals.append(record_reversal(store, live))
        sale.status = "refunded"
        sale.refunded_at = utcnow()

    logger.info(
        "sale refunded company_id=%s sale_id=%s reversals=%s skipped=%s",
        company_id, sale.id, [r.id for r in reversals], skipped,
    )
    return sale, reversals, skipped
