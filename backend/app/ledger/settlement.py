"""
Planejador de liquidação de venda.

Dada uma venda finalizada, monta (sem gravar nada) a lista ordenada de
lançamentos que a representam no ledger:

1. separa o valor entre os fluxos produto/serviço pela proporção dos itens
   (subtotal zero => proporção de fallback, 50/50 por padrão)
2. entrada (down payment) => um lançamento pago por fluxo, vencendo na data da venda
3. restante / N parcelas, vencimento = data + (i+1) * 30 dias (não segue mês civil)
4. parcela só nasce paga se: sem entrada, parcela 0, N == 1 e pagamento à vista
   (dinheiro/pix); todo o resto fica pending

A soma dos valores planejados é sempre igual a sale.total (a última parcela e o
fluxo de serviço absorvem os centavos do arredondamento).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import List, Optional, Sequence, Tuple

from app.ledger.errors import ValidationError
from app.ledger.types import (
    CENT,
    ZERO,
    Origin,
    ReferenceType,
    Status,
    TransactionRecordInput,
    TransactionType,
    to_money,
)

DEFAULT_INTERVAL_DAYS = 30
DEFAULT_ZERO_SUBTOTAL_PRODUCT_RATIO = Decimal("0.5")
DEFAULT_IMMEDIATE_METHODS = ("dinheiro", "pix")

SALE_CATEGORY = "Vendas"

_STREAM_TAGS = {
    Origin.PRODUCT_SALE: "Prod",
    Origin.SERVICE_SALE: "Serv",
}


@dataclass(frozen=True)
class SaleLine:
    kind: str  # "product" | "service"
    unit_price: Decimal
    quantity: int

    @property
    def total(self) -> Decimal:
        return to_money(to_money(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class SaleSnapshot:
    """Venda finalizada, como o planejador a enxerga (sem ORM)."""
    id: int
    company_id: int
    date: date
    total: Decimal
    payment_method: str = "dinheiro"
    installment_count: int = 1
    down_payment: Decimal = ZERO
    display_id: Optional[int] = None
    customer: str = ""
    lines: Sequence[SaleLine] = field(default_factory=tuple)


def stream_totals(lines: Sequence[SaleLine]) -> Tuple[Decimal, Decimal]:
    product_total = ZERO
    service_total = ZERO
    for ln in lines:
        kind = (ln.kind or "").strip().lower()
        if kind == "product":
            product_total += ln.total
        elif kind == "service":
            service_total += ln.total
        else:
            raise ValidationError("tipo de item inválido", field="kind", value=ln.kind, expected=["product", "service"])
    return product_total, service_total


def product_ratio(product_total: Decimal, service_total: Decimal, fallback: Decimal) -> Decimal:
    subtotal = product_total + service_total
    if subtotal == ZERO:
        return Decimal(str(fallback))
    return product_total / subtotal


def split_streams(amount: Decimal, ratio_product: Decimal) -> List[Tuple[Origin, Decimal]]:
    """Divide `amount` entre produto/serviço; serviço fica com o resto (conserva centavos)."""
    product_part = (amount * ratio_product).quantize(CENT, rounding=ROUND_HALF_UP)
    service_part = amount - product_part
    out = []
    if product_part > ZERO:
        out.append((Origin.PRODUCT_SALE, product_part))
    if service_part > ZERO:
        out.append((Origin.SERVICE_SALE, service_part))
    return out


def installment_amounts(amount: Decimal, count: int) -> List[Decimal]:
    """N parcelas de floor(amount/N); a última absorve o resto."""
    base = (amount / count).quantize(CENT, rounding=ROUND_DOWN)
    last = amount - base * (count - 1)
    return [base] * (count - 1) + [last]


def sale_reference(sale: SaleSnapshot) -> str:
    seq = sale.display_id if sale.display_id is not None else sale.id
    return f"Venda #{int(seq):04d}"


def _describe(sale: SaleSnapshot, origin: Origin, part: str) -> str:
    text = f"{sale_reference(sale)} ({_STREAM_TAGS[origin]})"
    if part:
        text = f"{text} {part}"
    customer = (sale.customer or "").strip()
    if customer:
        text = f"{text} - {customer}"
    return text


def _validate(sale: SaleSnapshot) -> Tuple[Decimal, Decimal]:
    if not sale.company_id:
        raise ValidationError("company_id ausente", field="company_id")
    total = to_money(sale.total)
    down_payment = to_money(sale.down_payment or ZERO)
    if total < ZERO:
        raise ValidationError("total não pode ser negativo", field="total", value=str(total))
    if down_payment < ZERO:
        raise ValidationError("entrada não pode ser negativa", field="down_payment", value=str(down_payment))
    if down_payment > total:
        raise ValidationError(
            "entrada maior que o total da venda",
            field="down_payment",
            value=str(down_payment),
            total=str(total),
        )
    if sale.installment_count is None or int(sale.installment_count) < 1:
        raise ValidationError("installment_count deve ser >= 1", field="installment_count")
    for ln in sale.lines:
        if ln.quantity is None or int(ln.quantity) < 1:
            raise ValidationError("quantidade deve ser >= 1", field="quantity")
        if to_money(ln.unit_price) < ZERO:
            raise ValidationError("preço unitário não pode ser negativo", field="unit_price")
    return total, down_payment


def installment_status(
    *,
    has_down_payment: bool,
    index: int,
    count: int,
    payment_method: str,
    immediate_methods: Sequence[str] = DEFAULT_IMMEDIATE_METHODS,
) -> Status:
    method = (payment_method or "").strip().lower()
    immediate = {m.strip().lower() for m in immediate_methods}
    if not has_down_payment and index == 0 and count == 1 and method in immediate:
        return Status.PAID
    return Status.PENDING


def plan_sale_movements(
    sale: SaleSnapshot,
    *,
    interval_days: int = DEFAULT_INTERVAL_DAYS,
    zero_subtotal_product_ratio: Decimal = DEFAULT_ZERO_SUBTOTAL_PRODUCT_RATIO,
    immediate_methods: Sequence[str] = DEFAULT_IMMEDIATE_METHODS,
) -> List[TransactionRecordInput]:
    total, down_payment = _validate(sale)
    count = int(sale.installment_count)

    product_total, service_total = stream_totals(sale.lines)
    ratio = product_ratio(product_total, service_total, zero_subtotal_product_ratio)

    def _record(origin: Origin, amount: Decimal, status: Status, due: date, part: str) -> TransactionRecordInput:
        return TransactionRecordInput(
            company_id=sale.company_id,
            description=_describe(sale, origin, part),
            type=TransactionType.INCOME,
            amount=amount,
            reference_id=str(sale.id),
            reference_type=ReferenceType.SALE,
            origin=origin,
            category=SALE_CATEGORY,
            status=status,
            due_date=due,
        )

    planned: List[TransactionRecordInput] = []

    if down_payment > ZERO:
        for origin, part_amount in split_streams(down_payment, ratio):
            planned.append(_record(origin, part_amount, Status.PAID, sale.date, "Entrada"))

    amount_to_install = total - down_payment
    if amount_to_install > ZERO:
        for i, inst_amount in enumerate(installment_amounts(amount_to_install, count)):
            due = sale.date + timedelta(days=(i + 1) * interval_days)
            status = installment_status(
                has_down_payment=down_payment > ZERO,
                index=i,
                count=count,
                payment_method=sale.payment_method,
                immediate_methods=immediate_methods,
            )
            part = f"{i + 1}/{count}" if count > 1 else ""
            for origin, part_amount in split_streams(inst_amount, ratio):
                planned.append(_record(origin, part_amount, status, due, part))

    return planned
