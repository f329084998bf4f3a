"""
Operações do ledger.

Regras:
- lançamento gravado nunca é alterado nem excluído; correção = estorno
- estorno: tipo invertido, mesmo valor, reference_type="reversal",
  reference_id=<id original>; no máximo um por original
- saldo = fold puro sobre todos os lançamentos (sem total acumulado salvo)
"""
from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Tuple

from app.ledger.errors import DuplicateReversalError, RecordNotFoundError, ValidationError
from app.ledger.store import RecordStore
from app.ledger.types import (
    REVERSAL_PREFIX,
    DESCRIPTION_MAX,
    ZERO,
    LedgerTotals,
    Origin,
    ReferenceType,
    Status,
    TransactionRecordInput,
    TransactionType,
    to_money,
)
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)


def record_movement(store: RecordStore, data: TransactionRecordInput) -> Transaction:
    """Valida e grava um lançamento. status default = paid."""
    return store.append(data.validated())


def build_reversal(original: Transaction) -> TransactionRecordInput:
    description = f"{REVERSAL_PREFIX}{original.description or ''}"[:DESCRIPTION_MAX]
    return TransactionRecordInput(
        company_id=original.company_id,
        description=description,
        type=TransactionType(original.type).flipped(),
        amount=to_money(original.amount),
        reference_id=str(original.id),
        reference_type=ReferenceType.REVERSAL,
        origin=Origin(original.origin),
        category=original.category,
        status=Status(original.status or Status.PAID.value),
        due_date=original.due_date,
    )


def _checked_reversal(store: RecordStore, original: Transaction) -> TransactionRecordInput:
    # precisa rodar dentro de store.transaction(): o lock vale até o commit
    if original.reference_type == ReferenceType.REVERSAL.value:
        raise ValidationError("lançamento de estorno não pode ser estornado", record_id=original.id)

    locked = store.get(original.company_id, original.id, lock=True)
    if locked is None:
        raise RecordNotFoundError("lançamento não encontrado", record_id=original.id)

    existing = store.query_by_reference(original.company_id, str(original.id), ReferenceType.REVERSAL)
    if existing:
        raise DuplicateReversalError(
            f"lançamento {original.id} já foi estornado",
            original_id=original.id,
            reversal_id=existing[0].id,
        )
    return build_reversal(locked).validated()


def record_reversal(store: RecordStore, original: Transaction) -> Transaction:
    """
    Grava o estorno de `original`.
    Levanta DuplicateReversalError se já existir estorno (checagem + índice único no banco).
    """
    with store.transaction():
        reversal = store.append(_checked_reversal(store, original))
        store.log_committed(
            logger,
            "ledger reversal company_id=%s original=%s reversal=%s status=%s",
            reversal.company_id, reversal.reference_id, reversal.id, reversal.status,
        )
    return reversal


def amend_movement(
    store: RecordStore, original: Transaction, data: TransactionRecordInput
) -> Tuple[Transaction, Transaction]:
    """
    "Edição" de um lançamento: estorno do original + novo lançamento manual
    apontando para ele. Os dois entram juntos (mesmo batch) ou nenhum.
    """
    replacement = replace(
        data,
        company_id=original.company_id,
        reference_id=str(original.id),
        reference_type=ReferenceType.MANUAL,
    ).validated()

    with store.transaction():
        reversal_input = _checked_reversal(store, original)
        reversal, new_row = store.append_batch([reversal_input, replacement])
        store.log_committed(
            logger,
            "ledger amend company_id=%s original=%s reversal=%s replacement=%s",
            new_row.company_id, new_row.reference_id, reversal.id, new_row.id,
        )
    return reversal, new_row


def settle_movement(store: RecordStore, record: Transaction) -> Transaction:
    """
    Confirma recebimento/pagamento: pending -> paid (única mudança permitida).
    Trava o lançamento como o estorno faz, então liquidar e estornar o mesmo
    registro ao mesmo tempo não deixa os dois passarem.
    """
    with store.transaction():
        locked = store.get(record.company_id, record.id, lock=True)
        if locked is None:
            raise RecordNotFoundError("lançamento não encontrado", record_id=record.id)
        if locked.reference_type == ReferenceType.REVERSAL.value:
            raise ValidationError("estorno não pode ser liquidado diretamente", record_id=locked.id)
        if locked.status == Status.PAID.value:
            raise ValidationError("lançamento já está pago", record_id=locked.id)
        if store.query_by_reference(locked.company_id, str(locked.id), ReferenceType.REVERSAL):
            raise ValidationError("lançamento estornado não pode ser liquidado", record_id=locked.id)
        return store.mark_paid(locked)


# -----------------------------
# Saldo (fold puro)
# -----------------------------

def _is_paid(r) -> bool:
    # status ausente conta como pago (registros legados)
    return (r.status or Status.PAID.value) == Status.PAID.value


def _split(records: Iterable, *, paid: bool) -> Tuple[Decimal, Decimal, Decimal, Decimal]:
    income = expense = income_rev = expense_rev = ZERO
    for r in records:
        if _is_paid(r) != paid:
            continue
        amount = to_money(r.amount)
        is_reversal = r.reference_type == ReferenceType.REVERSAL.value
        if r.type == TransactionType.INCOME.value:
            if is_reversal:
                income_rev += amount
            else:
                income += amount
        elif r.type == TransactionType.EXPENSE.value:
            if is_reversal:
                expense_rev += amount
            else:
                expense += amount
    return income, expense, income_rev, expense_rev


def fold_balance(records: Iterable) -> Decimal:
    """
    Saldo de caixa a partir do conjunto de lançamentos (ordem irrelevante).

        (entradas_pagas - estornos_de_entrada) - (saidas_pagas - estornos_de_saida)

    Estorno de entrada é um lançamento "expense" com reference_type="reversal".
    Lançamentos pending nunca entram no saldo.
    """
    income, expense, income_rev, expense_rev = _split(records, paid=True)
    return (income - expense_rev) - (expense - income_rev)


def summarize(records: Iterable) -> LedgerTotals:
    records = list(records)
    income, expense, income_rev, expense_rev = _split(records, paid=True)
    p_income, p_expense, p_income_rev, p_expense_rev = _split(records, paid=False)
    net_income = income - expense_rev
    net_expense = expense - income_rev
    return LedgerTotals(
        income_paid=net_income,
        expense_paid=net_expense,
        balance=net_income - net_expense,
        pending_receivables=p_income - p_expense_rev,
        pending_payables=p_expense - p_income_rev,
        count=len(records),
    )


def compute_balance(store: RecordStore, company_id: int) -> Decimal:
    """Replay de todos os lançamentos da empresa."""
    if not company_id:
        raise ValidationError("company_id ausente", field="company_id")
    return fold_balance(store.query_by_company(company_id))
