import datetime as _dt
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.schemas.transaction import TransactionOut


class SaleItemIn(BaseModel):
    kind: str = Field(pattern="^(product|service)$")
    item_ref: str | None = Field(default=None, max_length=64)
    name: str = Field(default="", max_length=200)
    quantity: int = Field(default=1, ge=1)
    unit_price: Decimal = Field(ge=0, max_digits=14, decimal_places=2)


class SaleCreate(BaseModel):
    customer: str = Field(default="", max_length=200)
    date: _dt.date = Field(default_factory=_dt.date.today)
    items: list[SaleItemIn] = Field(default_factory=list)

    # desconto em valor OU percentual (não os dois)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    discount_percent: Decimal | None = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)

    # vendas legadas / valor manual: total informado sem itens
    total: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)

    payment_method: str = Field(default="dinheiro", min_length=1, max_length=40)
    installment_count: int = Field(default=1, ge=1, le=120)
    down_payment: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)

    @model_validator(mode="after")
    def _check(self):
        if self.discount_percent is not None and self.discount_amount:
            raise ValueError("informe discount_amount OU discount_percent")
        if not self.items and self.total is None:
            raise ValueError("venda sem itens exige total")
        if self.items and self.total is not None:
            # com itens o total é calculado; não aceita valor concorrente
            raise ValueError("informe items OU total")
        return self


class SaleItemOut(BaseModel):
    id: int
    kind: str
    item_ref: str | None = None
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class SaleOut(BaseModel):
    id: int
    company_id: int
    display_id: int
    customer: str
    date: _dt.date
    subtotal: Decimal
    discount_amount: Decimal
    discount_percent: Decimal | None = None
    total: Decimal
    payment_method: str
    installment_count: int
    down_payment: Decimal
    status: str
    refunded_at: _dt.datetime | None = None
    items: list[SaleItemOut] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class SaleWithLedgerOut(BaseModel):
    sale: SaleOut
    transactions: list[TransactionOut]


class PlannedMovement(BaseModel):
    description: str
    type: str
    amount: Decimal
    origin: str
    category: str
    status: str
    due_date: _dt.date | None = None


class SettlementPreview(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    movements: list[PlannedMovement]


class RefundOut(BaseModel):
    sale: SaleOut
    reversals: list[TransactionOut]
    skipped_ids: list[int] = Field(default_factory=list)
