from __future__ import annotations

from collections import defaultdict
from datetime import datetime, date, timedelta
from io import BytesIO
import os

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from sqlalchemy.orm import Session
from sqlalchemy import func, case, select, and_

from app.db import get_db
from app.core.tenant import get_current_company_id
from app.ledger.operations import fold_balance, summarize
from app.ledger.store import SqlRecordStore
from app.ledger.types import ZERO, Origin, RecordFilters, ReferenceType, Status, TransactionType, to_money
from app.models.transaction import Transaction, utcnow
from app.schemas.reports import CategoryBreakdown, DailyPoint, DailyResponse, Period, StreamsResponse, SummaryResponse, Totals

router = APIRouter(prefix="/reports", tags=["reports"])


def _parse_iso_date_or_datetime(s: str, *, is_end: bool) -> datetime:
    """Aceita ISO date (YYYY-MM-DD) ou ISO datetime (YYYY-MM-DDTHH:MM:SS[.fff][Z|±HH:MM]).
    Para date-only:
      - start => 00:00:00
      - end   => 23:59:59.999999
    """
    raw = (s or "").strip()
    if not raw:
        raise HTTPException(
            status_code=422,
            detail={"error_code": "INVALID_DATE", "message": "Data vazia", "value": s},
        )

    s2 = raw.replace(" ", "T")
    if s2.endswith("Z"):
        s2 = s2[:-1] + "+00:00"

    # tenta datetime
    if "T" in s2:
        try:
            dt = datetime.fromisoformat(s2)
            # normaliza tz-aware pra naive (backend usa naive)
            return dt.replace(tzinfo=None) if getattr(dt, "tzinfo", None) else dt
        except ValueError:
            pass

    # tenta date-only (pega os 10 primeiros chars pra aceitar "YYYY-MM-DD..." também)
    try:
        d = date.fromisoformat(s2[:10])
    except ValueError:
        field = "end" if is_end else "start"
        raise HTTPException(
            status_code=422,
            detail={
                "error_code": "INVALID_DATE",
                "field": field,
                "value": raw,
                "expected": ["YYYY-MM-DD", "YYYY-MM-DDTHH:MM:SS"],
            },
        )

    if is_end:
        return datetime(d.year, d.month, d.day, 23, 59, 59, 999999)
    return datetime(d.year, d.month, d.day, 0, 0, 0)


def _resolve_period(start: str | None, end: str | None) -> tuple[datetime, datetime, Period]:
    now = utcnow()

    if start is None and end is None:
        end_dt = now
        start_dt = now - timedelta(days=30)
    elif start is not None and end is None:
        start_dt = _parse_iso_date_or_datetime(start, is_end=False)
        end_dt = now
    elif start is None and end is not None:
        end_dt = _parse_iso_date_or_datetime(end, is_end=True)
        start_dt = end_dt - timedelta(days=30)
    else:
        start_dt = _parse_iso_date_or_datetime(start, is_end=False)
        end_dt = _parse_iso_date_or_datetime(end, is_end=True)

    if start_dt > end_dt:
        raise HTTPException(status_code=422, detail={
            'error_code': 'INVALID_PERIOD',
            'message': 'start não pode ser maior que end',
            'start': start_dt.date().isoformat(),
            'end': end_dt.date().isoformat(),
        })

    period = Period(start=start_dt.date().isoformat(), end=end_dt.date().isoformat())
    return start_dt, end_dt, period


def _period_records(db: Session, company_id: int, start_dt: datetime, end_dt: datetime) -> list[Transaction]:
    return SqlRecordStore(db).query_by_company(company_id, RecordFilters(start=start_dt, end=end_dt))


def _totals(records: list[Transaction]) -> Totals:
    t = summarize(records)
    return Totals(
        entradas=t.income_paid,
        saidas=t.expense_paid,
        saldo=t.balance,
        a_receber=t.pending_receivables,
        a_pagar=t.pending_payables,
        qtd_transacoes=t.count,
    )


_IS_REV = Transaction.reference_type == ReferenceType.REVERSAL.value
_IS_IN = Transaction.type == TransactionType.INCOME.value
_IS_OUT = Transaction.type == TransactionType.EXPENSE.value

# estorno de entrada abate entradas; estorno de saída abate saídas
_NET_IN = case((and_(_IS_IN, ~_IS_REV), Transaction.amount), (and_(_IS_OUT, _IS_REV), -Transaction.amount), else_=0)
_NET_OUT = case((and_(_IS_OUT, ~_IS_REV), Transaction.amount), (and_(_IS_IN, _IS_REV), -Transaction.amount), else_=0)


def _by_category(db: Session, company_id: int, start_dt: datetime, end_dt: datetime) -> list[CategoryBreakdown]:
    in_sum = func.coalesce(func.sum(_NET_IN), 0).label("in_amount")
    out_sum = func.coalesce(func.sum(_NET_OUT), 0).label("out_amount")

    q = (
        select(
            Transaction.category,
            in_sum,
            out_sum,
            func.count(Transaction.id).label("cnt"),
        )
        .where(
            Transaction.company_id == company_id,
            Transaction.status == Status.PAID.value,
            Transaction.created_at >= start_dt,
            Transaction.created_at <= end_dt,
        )
        .group_by(Transaction.category)
        .order_by(Transaction.category.asc())
    )

    out: list[CategoryBreakdown] = []
    for r in db.execute(q).all():
        entradas = to_money(r.in_amount or 0)
        saidas = to_money(r.out_amount or 0)
        out.append(
            CategoryBreakdown(
                category=str(r.category),
                entradas=entradas,
                saidas=saidas,
                saldo=entradas - saidas,
                qtd_transacoes=int(r.cnt or 0),
            )
        )
    out.sort(key=lambda c: c.entradas + c.saidas, reverse=True)
    return out


@router.get("/summary", response_model=SummaryResponse)
def summary(
    start: str | None = Query(None, description="YYYY-MM-DD ou ISO datetime"),
    end: str | None = Query(None, description="YYYY-MM-DD ou ISO datetime"),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    start_dt, end_dt, period = _resolve_period(start, end)
    totals = _totals(_period_records(db, company_id, start_dt, end_dt))
    by_cat = _by_category(db, company_id, start_dt, end_dt)
    return SummaryResponse(company_id=company_id, period=period, totals=totals, by_category=by_cat)


@router.get("/daily", response_model=DailyResponse)
def daily(
    start: str | None = Query(None),
    end: str | None = Query(None),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    start_dt, end_dt, period = _resolve_period(start, end)

    by_day: dict[str, list[Transaction]] = defaultdict(list)
    for tx in _period_records(db, company_id, start_dt, end_dt):
        by_day[tx.created_at.date().isoformat()].append(tx)

    series: list[DailyPoint] = []
    for day in sorted(by_day):
        t = summarize(by_day[day])
        series.append(DailyPoint(date=day, entradas=t.income_paid, saidas=t.expense_paid, saldo=t.balance))

    return DailyResponse(company_id=company_id, period=period, series=series)


@router.get("/streams", response_model=StreamsResponse)
def streams(
    start: str | None = Query(None),
    end: str | None = Query(None),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    """Vendas de produtos x serviços (líquidas de estorno) e despesas fora estornos."""
    start_dt, end_dt, period = _resolve_period(start, end)
    records = [
        r for r in _period_records(db, company_id, start_dt, end_dt)
        if r.status == Status.PAID.value
    ]

    def _stream(origin: Origin):
        return fold_balance(r for r in records if r.origin == origin.value)

    despesas = sum(
        (to_money(r.amount) for r in records
         if r.type == TransactionType.EXPENSE.value and r.reference_type != ReferenceType.REVERSAL.value),
        ZERO,
    )
    return StreamsResponse(
        company_id=company_id,
        period=period,
        vendas_produtos=_stream(Origin.PRODUCT_SALE),
        vendas_servicos=_stream(Origin.SERVICE_SALE),
        despesas=despesas,
    )


# === Extrato PDF ===
_DEJAVU_TTF = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"

def _pdf_font_name():
    if os.path.exists(_DEJAVU_TTF):
        try:
            pdfmetrics.registerFont(TTFont("DejaVu", _DEJAVU_TTF))
            return "DejaVu"
        except Exception:
            # fonte corrompida/ilegível: segue com a embutida
            pass
    return "Helvetica"


def _fmt_brl(value) -> str:
    # formatação simples, sem locale
    return f"R$ {to_money(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def _build_statement_pdf(title: str, company_id: int, period: Period, totals: Totals, records: list[Transaction]) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    font = _pdf_font_name()
    width, height = A4

    c.setTitle(title)
    c.setFont(font, 16)
    c.drawString(20*mm, height - 20*mm, title)

    c.setFont(font, 10)
    generated_at = utcnow().isoformat(timespec="seconds") + "Z"
    y = height - 30*mm
    c.drawString(20*mm, y, f"Gerado em: {generated_at}")
    y -= 8*mm
    c.drawString(20*mm, y, f"company_id: {company_id}")
    y -= 8*mm
    c.drawString(20*mm, y, f"período: {period.start} → {period.end}")
    y -= 8*mm
    c.drawString(
        20*mm, y,
        f"Entradas: {_fmt_brl(totals.entradas)}   Saídas: {_fmt_brl(totals.saidas)}   Saldo: {_fmt_brl(totals.saldo)}",
    )
    y -= 6*mm
    c.drawString(20*mm, y, f"A receber: {_fmt_brl(totals.a_receber)}   A pagar: {_fmt_brl(totals.a_pagar)}")
    y -= 12*mm

    c.setFont(font, 9)
    text = c.beginText(20*mm, y)
    text.setLeading(12)

    # ordem cronológica no extrato
    for tx in sorted(records, key=lambda t: (t.created_at, t.id)):
        if text.getY() < 20*mm:
            c.drawText(text)
            c.showPage()
            c.setFont(font, 9)
            text = c.beginText(20*mm, height - 20*mm)
            text.setLeading(12)
        sign = "+" if tx.type == TransactionType.INCOME.value else "-"
        due = f" venc. {tx.due_date.isoformat()}" if tx.due_date else ""
        line = (
            f"#{tx.id} {tx.created_at.date().isoformat()} {sign}{_fmt_brl(tx.amount)} "
            f"[{tx.status}] {tx.description}{due}"
        )
        text.textLine(line[:180])

    c.drawText(text)
    c.showPage()
    c.save()
    return buf.getvalue()


@router.get(
    "/statement/pdf",
    summary="Extrato de lançamentos em PDF",
    responses={200: {"content": {"application/pdf": {}}}},
)
def statement_pdf(
    start: str | None = Query(None),
    end: str | None = Query(None),
    db: Session = Depends(get_db), company_id: int = Depends(get_current_company_id),
):
    start_dt, end_dt, period = _resolve_period(start, end)
    records = _period_records(db, company_id, start_dt, end_dt)
    pdf = _build_statement_pdf("Extrato Financeiro", company_id, period, _totals(records), records)

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": 'inline; filename="extrato.pdf"'},
    )
