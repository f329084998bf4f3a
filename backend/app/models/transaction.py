from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, ForeignKey, DateTime, Date, Numeric, Index, CheckConstraint, event, inspect, text
from sqlalchemy.orm import Mapped, mapped_column
from app.db import Base
from app.ledger.errors import ImmutableRecordError


def utcnow() -> datetime:
    # backend usa datetime naive em UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Transaction(Base):
    """
    Lançamento financeiro imutável (append-only).
    Correção = novo lançamento de tipo oposto com reference_type="reversal".
    """
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("type IN ('income', 'expense')", name="ck_transactions_type"),
        CheckConstraint("status IN ('paid', 'pending')", name="ck_transactions_status"),
        CheckConstraint("reference_type IN ('sale', 'reversal', 'initial', 'manual')", name="ck_transactions_reference_type"),
        CheckConstraint("origin IN ('product_sale', 'service_sale', 'manual')", name="ck_transactions_origin"),
        CheckConstraint("amount >= 0", name="ck_transactions_amount_non_negative"),
        # no máximo UM estorno por lançamento original
        Index(
            "uq_transactions_reversal_reference",
            "company_id",
            "reference_id",
            unique=True,
            sqlite_where=text("reference_type = 'reversal'"),
            postgresql_where=text("reference_type = 'reversal'"),
        ),
        Index("ix_transactions_company_created", "company_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    description: Mapped[str] = mapped_column(String(255), default="")

    # "income" (entrada) ou "expense" (saida)
    type: Mapped[str] = mapped_column(String(10), index=True)

    # decimal fixo (evita drift de float)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    reference_type: Mapped[str] = mapped_column(String(10), default="manual", index=True)
    origin: Mapped[str] = mapped_column(String(20), default="manual")
    category: Mapped[str] = mapped_column(String(80), default="other")

    status: Mapped[str] = mapped_column(String(10), default="paid", index=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # lançamentos gravados juntos (entrada + parcelas, estorno + novo) compartilham o lote
    batch_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)


_FROZEN_COLUMNS = (
    "company_id",
    "created_at",
    "description",
    "type",
    "amount",
    "reference_id",
    "reference_type",
    "origin",
    "category",
    "due_date",
    "batch_id",
)


@event.listens_for(Transaction, "before_update")
def _guard_update(mapper, connection, target: Transaction) -> None:
    state = inspect(target)
    for name in _FROZEN_COLUMNS:
        if state.attrs[name].history.has_changes():
            raise ImmutableRecordError(f"lançamento {target.id}: campo '{name}' é imutável")

    status_hist = state.attrs["status"].history
    if status_hist.has_changes():
        old = status_hist.deleted[0] if status_hist.deleted else None
        if (old, target.status) != ("pending", "paid"):
            raise ImmutableRecordError(
                f"lançamento {target.id}: transição de status {old!r} -> {target.status!r} não permitida"
            )


@event.listens_for(Transaction, "before_delete")
def _guard_delete(mapper, connection, target: Transaction) -> None:
    raise ImmutableRecordError(f"lançamento {target.id}: lançamentos não podem ser excluídos (use estorno)")
