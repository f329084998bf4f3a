from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict

TYPE_PATTERN = "^(income|expense)$"
STATUS_PATTERN = "^(paid|pending)$"


class TransactionCreate(BaseModel):
    """Lançamento manual (tela Financeiro)."""
    description: str = Field(min_length=1, max_length=255)
    type: str = Field(pattern=TYPE_PATTERN)
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    status: str = Field(default="paid", pattern=STATUS_PATTERN)
    due_date: date | None = None
    category: str = Field(default="other", max_length=80)
    # "initial" = saldo inicial; qualquer outro lançamento avulso é "manual"
    reference_type: str = Field(default="manual", pattern="^(manual|initial)$")


class TransactionAmend(BaseModel):
    """Edição = estorno do original + novo lançamento com estes valores."""
    description: str = Field(min_length=1, max_length=255)
    type: str = Field(pattern=TYPE_PATTERN)
    amount: Decimal = Field(ge=0, max_digits=14, decimal_places=2)
    status: str = Field(default="paid", pattern=STATUS_PATTERN)
    due_date: date | None = None
    category: str = Field(default="other", max_length=80)


class TransactionOut(BaseModel):
    id: int
    company_id: int
    created_at: datetime
    description: str
    type: str
    amount: Decimal
    reference_id: str | None = None
    reference_type: str
    origin: str
    category: str
    status: str
    due_date: date | None = None
    batch_id: str | None = None

    model_config = ConfigDict(from_attributes=True)


class AmendOut(BaseModel):
    reversal: TransactionOut
    replacement: TransactionOut


class BalanceOut(BaseModel):
    company_id: int
    balance: Decimal
    income_paid: Decimal
    expense_paid: Decimal
    pending_receivables: Decimal
    pending_payables: Decimal
    qtd_transacoes: int
