import itertools
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.ledger.errors import DuplicateReversalError, ImmutableRecordError, ValidationError
from app.ledger.operations import (
    amend_movement,
    build_reversal,
    compute_balance,
    fold_balance,
    record_movement,
    record_reversal,
    settle_movement,
    summarize,
)
from app.ledger.types import ReferenceType, Status, TransactionRecordInput, TransactionType


def _movement(company_id, amount, type_="income", status=None, **kw):
    return TransactionRecordInput(
        company_id=company_id,
        description=kw.pop("description", "lançamento"),
        type=TransactionType(type_),
        amount=Decimal(str(amount)),
        status=Status(status) if status else None,
        **kw,
    )


def test_record_movement_defaults_status_to_paid(store, company):
    tx = record_movement(store, _movement(company.id, "10.50"))

    assert tx.id is not None
    assert tx.status == "paid"
    assert tx.amount == Decimal("10.50")
    assert tx.reference_type == "manual"
    assert tx.origin == "manual"


@pytest.mark.parametrize(
    "kw",
    [
        {"amount": Decimal("-1")},
        {"company_id": None},
        {"type": "transfer"},
        {"status": "cancelled"},
        {"reference_type": "refund"},
        {"origin": "online"},
        {"description": "x" * 300},
    ],
)
def test_record_movement_rejects_malformed_input(store, company, kw):
    base = dict(company_id=company.id, description="ok", type="income", amount=Decimal("1"))
    base.update(kw)
    with pytest.raises(ValidationError):
        record_movement(store, TransactionRecordInput(**base))

    assert compute_balance(store, company.id) == Decimal("0")


def test_reversal_of_paid_income_nets_to_zero(store, company):
    before = compute_balance(store, company.id)
    original = record_movement(store, _movement(company.id, 50, description="Venda balcão"))
    assert compute_balance(store, company.id) == before + Decimal("50")

    reversal = record_reversal(store, original)

    assert reversal.type == "expense"
    assert reversal.amount == Decimal("50.00")
    assert reversal.reference_type == "reversal"
    assert reversal.reference_id == str(original.id)
    assert reversal.description == "Estorno: Venda balcão"
    assert compute_balance(store, company.id) == before


def test_reversal_copies_origin_category_status_and_due_date(store, company):
    from datetime import date

    original = record_movement(
        store,
        _movement(company.id, 30, "expense", status="pending", category="Aluguel", due_date=date(2026, 5, 10)),
    )
    reversal = record_reversal(store, original)

    assert reversal.type == "income"
    assert reversal.origin == original.origin
    assert reversal.category == "Aluguel"
    assert reversal.status == "pending"
    assert reversal.due_date == date(2026, 5, 10)


def test_second_reversal_is_rejected_and_balance_moves_once(store, company):
    original = record_movement(store, _movement(company.id, 80))
    record_reversal(store, original)
    after_first = compute_balance(store, company.id)

    with pytest.raises(DuplicateReversalError) as exc:
        record_reversal(store, original)

    assert exc.value.original_id == original.id
    assert compute_balance(store, company.id) == after_first == Decimal("0")


def test_reversal_record_cannot_itself_be_reversed(store, company):
    reversal = record_reversal(store, record_movement(store, _movement(company.id, 5)))

    with pytest.raises(ValidationError):
        record_reversal(store, reversal)


def test_pending_records_never_touch_balance(store, company):
    record_movement(store, _movement(company.id, 100))
    pending = record_movement(store, _movement(company.id, 999, status="pending"))
    record_movement(store, _movement(company.id, 40, "expense", status="pending"))

    assert compute_balance(store, company.id) == Decimal("100")

    settle_movement(store, pending)
    assert compute_balance(store, company.id) == Decimal("1099")


def test_settle_rejects_paid_reversed_and_reversal_records(store, company):
    paid = record_movement(store, _movement(company.id, 10))
    with pytest.raises(ValidationError):
        settle_movement(store, paid)

    pending = record_movement(store, _movement(company.id, 10, status="pending"))
    reversal = record_reversal(store, pending)
    with pytest.raises(ValidationError):
        settle_movement(store, pending)
    with pytest.raises(ValidationError):
        settle_movement(store, reversal)


def test_amend_reverses_original_and_appends_replacement(store, company):
    original = record_movement(store, _movement(company.id, 100, description="Serviço errado"))

    reversal, replacement = amend_movement(
        store, original, _movement(company.id, 120, description="Serviço corrigido")
    )

    assert reversal.reference_id == str(original.id)
    assert replacement.reference_id == str(original.id)
    assert replacement.reference_type == "manual"
    assert replacement.amount == Decimal("120.00")
    assert reversal.batch_id is not None and reversal.batch_id == replacement.batch_id
    assert compute_balance(store, company.id) == Decimal("120")


def test_amend_twice_on_same_original_is_rejected(store, company):
    original = record_movement(store, _movement(company.id, 10))
    amend_movement(store, original, _movement(company.id, 11))

    with pytest.raises(DuplicateReversalError):
        amend_movement(store, original, _movement(company.id, 12))
    assert compute_balance(store, company.id) == Decimal("11")


def test_ledger_rows_are_immutable(db, store, company):
    tx = record_movement(store, _movement(company.id, 10))
    tx_id = tx.id

    tx.amount = Decimal("11")
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    db.delete(store.get(company.id, tx_id))
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    assert store.get(company.id, tx_id).amount == Decimal("10.00")
    assert compute_balance(store, company.id) == Decimal("10")


def test_balance_is_scoped_to_company(store, company, other_company):
    record_movement(store, _movement(company.id, 10))
    record_movement(store, _movement(other_company.id, 99))

    assert compute_balance(store, company.id) == Decimal("10")
    assert compute_balance(store, other_company.id) == Decimal("99")


# -----------------------------
# fold puro (sem banco)
# -----------------------------

def _rec(type_, amount, reference_type="manual", status="paid"):
    return SimpleNamespace(type=type_, amount=Decimal(amount), reference_type=reference_type, status=status)


def test_fold_balance_is_order_independent():
    records = [
        _rec("income", "100"),
        _rec("expense", "30"),
        _rec("expense", "100", "reversal"),
        _rec("income", "30", "reversal"),
        _rec("income", "12.34"),
        _rec("expense", "1.01", status="pending"),
    ]
    expected = Decimal("12.34")

    for perm in itertools.permutations(records):
        assert fold_balance(perm) == expected


def test_fold_balance_counts_missing_status_as_paid():
    assert fold_balance([_rec("income", "5", status=None)]) == Decimal("5")


def test_fold_balance_matches_paid_income_minus_paid_expense():
    records = [_rec("income", "70"), _rec("expense", "20"), _rec("expense", "70", "reversal")]

    assert fold_balance(records) == Decimal("-20")


def test_summarize_reports_net_totals_and_receivables():
    records = [
        _rec("income", "100"),
        _rec("expense", "100", "reversal"),
        _rec("income", "40"),
        _rec("expense", "15"),
        _rec("income", "60", status="pending"),
        _rec("income", "25", status="pending"),
        _rec("expense", "25", "reversal", status="pending"),
        _rec("expense", "9", status="pending"),
    ]
    t = summarize(records)

    assert t.income_paid == Decimal("40")
    assert t.expense_paid == Decimal("15")
    assert t.balance == Decimal("25")
    assert t.pending_receivables == Decimal("60")
    assert t.pending_payables == Decimal("9")
    assert t.count == 8


def test_build_reversal_flips_type():
    original = SimpleNamespace(
        id=7,
        company_id=3,
        description="Conta de luz",
        type="expense",
        amount=Decimal("80.10"),
        origin="manual",
        category="Energia",
        status="paid",
        due_date=None,
    )
    rev = build_reversal(original)

    assert rev.type is TransactionType.INCOME
    assert rev.reference_type is ReferenceType.REVERSAL
    assert rev.reference_id == "7"
    assert rev.amount == Decimal("80.10")


# -----------------------------
# valores e concorrência
# -----------------------------

def test_sub_cent_amount_is_rejected_not_rounded(store, company):
    with pytest.raises(ValidationError) as exc:
        record_movement(store, _movement(company.id, "10.005"))

    assert exc.value.context["field"] == "amount"
    assert compute_balance(store, company.id) == Decimal("0")


def test_trailing_zeros_are_not_sub_cent(store, company):
    tx = record_movement(store, _movement(company.id, "10.500"))

    assert tx.amount == Decimal("10.50")


def _in_other_session(fn):
    from app.db import SessionLocal
    from app.ledger.store import SqlRecordStore

    other = SessionLocal()
    try:
        return fn(SqlRecordStore(other))
    finally:
        other.close()


def test_settle_rereads_row_settled_elsewhere(store, company):
    pending = record_movement(store, _movement(company.id, 25, status="pending"))
    assert pending.status == "pending"  # cópia carregada nesta sessão

    _in_other_session(lambda s: settle_movement(s, s.get(company.id, pending.id)))

    with pytest.raises(ValidationError):
        settle_movement(store, pending)
    assert compute_balance(store, company.id) == Decimal("25")


def test_settle_refuses_record_reversed_elsewhere(store, company):
    pending = record_movement(store, _movement(company.id, 25, status="pending"))

    _in_other_session(lambda s: record_reversal(s, s.get(company.id, pending.id)))

    with pytest.raises(ValidationError):
        settle_movement(store, pending)
    assert compute_balance(store, company.id) == Decimal("0")


def test_reversal_copies_status_of_the_stored_row(store, company):
    pending = record_movement(store, _movement(company.id, 60, status="pending"))
    assert pending.status == "pending"

    _in_other_session(lambda s: settle_movement(s, s.get(company.id, pending.id)))
    reversal = record_reversal(store, pending)

    assert reversal.status == "paid"
    assert compute_balance(store, company.id) == Decimal("0")
