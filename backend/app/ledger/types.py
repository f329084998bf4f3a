from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from app.ledger.errors import ValidationError


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    def flipped(self) -> "TransactionType":
        return TransactionType.EXPENSE if self is TransactionType.INCOME else TransactionType.INCOME


class ReferenceType(str, Enum):
    SALE = "sale"
    REVERSAL = "reversal"
    INITIAL = "initial"  # saldo inicial
    MANUAL = "manual"


class Origin(str, Enum):
    PRODUCT_SALE = "product_sale"
    SERVICE_SALE = "service_sale"
    MANUAL = "manual"


class Status(str, Enum):
    PAID = "paid"
    PENDING = "pending"


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

REVERSAL_PREFIX = "Estorno: "
DESCRIPTION_MAX = 255


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        # str() evita herdar o erro binário do float
        d = Decimal(str(value))
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError("valor monetário inválido", value=str(value))
    if not d.is_finite():
        raise ValidationError("valor monetário inválido", value=str(value))
    return d


def to_money(value) -> Decimal:
    """Converte para Decimal com 2 casas (ROUND_HALF_UP). Nunca passa por float.
    Uso: valores calculados (proporções, parcelas, descontos)."""
    return _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def exact_money(value, field: str = "amount") -> Decimal:
    """Valor informado: precisa caber em centavos; fração de centavo é erro, não arredonda."""
    d = _as_decimal(value)
    q = d.quantize(CENT)
    if d != q:
        raise ValidationError(f"{field} com fração de centavo", field=field, value=str(value))
    return q


def _coerce_enum(enum_cls, value, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"{field} inválido",
            field=field,
            value=str(value),
            expected=[e.value for e in enum_cls],
        )


@dataclass(frozen=True)
class TransactionRecordInput:
    """
    Tudo que é preciso para gravar um lançamento.
    Contrato independente do ORM; o store converte para a linha da tabela.
    """
    company_id: int
    description: str
    type: TransactionType
    amount: Decimal
    reference_id: Optional[str] = None
    reference_type: ReferenceType = ReferenceType.MANUAL
    origin: Origin = Origin.MANUAL
    category: str = "other"
    status: Optional[Status] = None  # None => paid
    due_date: Optional[date] = None

    def validated(self) -> "TransactionRecordInput":
        """Devolve uma cópia normalizada ou levanta ValidationError."""
        if self.company_id is None or not isinstance(self.company_id, int) or self.company_id < 1:
            raise ValidationError("company_id ausente ou inválido", field="company_id")

        amount = exact_money(self.amount)
        if amount < ZERO:
            raise ValidationError("amount não pode ser negativo", field="amount", value=str(amount))

        description = (self.description or "").strip()
        if len(description) > DESCRIPTION_MAX:
            raise ValidationError(f"description excede {DESCRIPTION_MAX} caracteres", field="description")

        category = (self.category or "other").strip() or "other"

        due_date = self.due_date
        if isinstance(due_date, datetime):
            due_date = due_date.date()

        return replace(
            self,
            description=description,
            type=_coerce_enum(TransactionType, self.type, "type"),
            amount=amount,
            reference_id=str(self.reference_id) if self.reference_id is not None else None,
            reference_type=_coerce_enum(ReferenceType, self.reference_type, "reference_type"),
            origin=_coerce_enum(Origin, self.origin, "origin"),
            category=category,
            status=_coerce_enum(Status, self.status, "status") if self.status is not None else Status.PAID,
            due_date=due_date,
        )


@dataclass(frozen=True)
class RecordFilters:
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    type: Optional[TransactionType] = None
    status: Optional[Status] = None
    reference_type: Optional[ReferenceType] = None
    origin: Optional[Origin] = None
    category: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


@dataclass(frozen=True)
class LedgerTotals:
    income_paid: Decimal
    expense_paid: Decimal
    balance: Decimal
    pending_receivables: Decimal
    pending_payables: Decimal
    count: int
