from __future__ import annotations

from decimal import Decimal
from pydantic import BaseModel, Field


class Period(BaseModel):
    start: str = Field(description="YYYY-MM-DD")
    end: str = Field(description="YYYY-MM-DD")


class Totals(BaseModel):
    entradas: Decimal
    saidas: Decimal
    saldo: Decimal
    a_receber: Decimal
    a_pagar: Decimal
    qtd_transacoes: int


class CategoryBreakdown(BaseModel):
    category: str
    entradas: Decimal
    saidas: Decimal
    saldo: Decimal
    qtd_transacoes: int


class SummaryResponse(BaseModel):
    company_id: int
    period: Period
    totals: Totals
    by_category: list[CategoryBreakdown]


class DailyPoint(BaseModel):
    date: str = Field(description="YYYY-MM-DD")
    entradas: Decimal
    saidas: Decimal
    saldo: Decimal


class DailyResponse(BaseModel):
    company_id: int
    period: Period
    series: list[DailyPoint]


class StreamsResponse(BaseModel):
    """Receita por fluxo (líquida de estornos) e despesas que não são estorno."""
    company_id: int
    period: Period
    vendas_produtos: Decimal
    vendas_servicos: Decimal
    despesas: Decimal
