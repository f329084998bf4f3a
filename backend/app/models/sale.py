import datetime as _dt
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Integer, ForeignKey, DateTime, Date, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db import Base
from app.models.transaction import utcnow


class Sale(Base):
    """
    Registro comercial (mutável). Origem de um ou mais lançamentos do ledger,
    mas não faz parte dele: estorno marca status="refunded" (soft delete).
    """
    __tablename__ = "sales"
    __table_args__ = (UniqueConstraint("company_id", "display_id", name="uq_sales_company_display_id"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    # sequência por empresa (exibida como #0004)
    display_id: Mapped[int] = mapped_column(Integer)

    customer: Mapped[str] = mapped_column(String(200), default="")
    date: Mapped[_dt.date] = mapped_column(Date)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    discount_percent: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    payment_method: Mapped[str] = mapped_column(String(40), default="dinheiro")
    installment_count: Mapped[int] = mapped_column(Integer, default=1)
    down_payment: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    # active | refunded
    status: Mapped[str] = mapped_column(String(10), default="active", index=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    items: Mapped[list["SaleItem"]] = relationship(
        back_populates="sale", cascade="all, delete-orphan", order_by="SaleItem.id"
    )


class SaleItem(Base):
    __tablename__ = "sale_items"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id", ondelete="CASCADE"), index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)

    # "product" ou "service"
    kind: Mapped[str] = mapped_column(String(10))
    item_ref: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(200), default="")

    quantity: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2))

    sale: Mapped[Sale] = relationship(back_populates="items")
