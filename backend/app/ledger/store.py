from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import ContextManager, Iterator, Protocol, Sequence, Optional, List
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.ledger.errors import DuplicateReversalError, ImmutableRecordError, LedgerError, StorageError
from app.ledger.types import RecordFilters, ReferenceType, Status, TransactionRecordInput
from app.models.transaction import Transaction

logger = logging.getLogger(__name__)


# -----------------------------
# Contract: Record Store
# -----------------------------

class RecordStore(Protocol):
    """
    Coleção append-only de lançamentos, sempre com escopo de empresa.
    Não existe update/delete genérico: só append e a transição pending -> paid.
    """

    def transaction(self) -> ContextManager["RecordStore"]:
        ...

    def append(self, record: TransactionRecordInput) -> Transaction:
        ...

    def append_batch(self, records: Sequence[TransactionRecordInput]) -> List[Transaction]:
        ...

    def get(self, company_id: int, record_id: int, *, lock: bool = False) -> Optional[Transaction]:
        ...

    def query_by_company(self, company_id: int, filters: RecordFilters | None = None) -> List[Transaction]:
        ...

    def query_by_reference(
        self, company_id: int, reference_id: str, reference_type: ReferenceType | None = None
    ) -> List[Transaction]:
        ...

    def mark_paid(self, record: Transaction) -> Transaction:
        ...

    def log_committed(self, log: logging.Logger, msg: str, *args) -> None:
        ...


# -----------------------------
# SQLAlchemy implementation
# -----------------------------

def _to_row(rec: TransactionRecordInput, batch_id: str | None) -> Transaction:
    return Transaction(
        company_id=rec.company_id,
        description=rec.description,
        type=rec.type.value,
        amount=rec.amount,
        reference_id=rec.reference_id,
        reference_type=rec.reference_type.value,
        origin=rec.origin.value,
        category=rec.category,
        status=(rec.status or Status.PAID).value,
        due_date=rec.due_date,
        batch_id=batch_id,
    )


class SqlRecordStore:
    def __init__(self, db: Session):
        self.db = db
        self._depth = 0
        # linhas de log de escritas ainda não commitadas
        self._pending_logs: list[tuple[logging.Logger, str, tuple]] = []

    @contextmanager
    def transaction(self) -> Iterator["SqlRecordStore"]:
        """
        Agrupa escritas num único commit. Aninhável: só o nível mais externo
        faz commit/rollback. Qualquer erro desfaz o grupo inteiro.
        """
        outer = self._depth == 0
        self._depth += 1
        try:
            yield self
            if outer:
                self.db.commit()
        except LedgerError:
            if outer:
                self._rollback()
            raise
        except SQLAlchemyError as e:
            if outer:
                self._rollback()
            logger.exception("ledger store write failed")
            raise StorageError(f"falha ao gravar no banco: {_db_message(e)}") from e
        except Exception:
            if outer:
                self._rollback()
            raise
        finally:
            self._depth -= 1
        if outer:
            self._flush_logs()

    def _rollback(self) -> None:
        self.db.rollback()
        self._pending_logs.clear()

    def _flush_logs(self) -> None:
        pending, self._pending_logs = self._pending_logs, []
        for log, msg, args in pending:
            log.info(msg, *args)

    def log_committed(self, log: logging.Logger, msg: str, *args) -> None:
        """Loga já, ou depois do commit mais externo se houver transação aberta."""
        if self._depth:
            self._pending_logs.append((log, msg, args))
        else:
            log.info(msg, *args)

    def _write(self, records: Sequence[TransactionRecordInput], batch_id: str | None) -> List[Transaction]:
        for rec in records:
            if not rec.company_id:
                raise StorageError("escopo de empresa (company_id) ausente")

        rows = [_to_row(rec, batch_id) for rec in records]
        try:
            self.db.add_all(rows)
            self.db.flush()
        except IntegrityError as e:
            self._rollback()
            dup = self._existing_reversal_for(records)
            if dup is not None:
                raise dup from e
            logger.exception("ledger store rejected write")
            raise StorageError(f"escrita rejeitada pelo banco: {_db_message(e)}") from e
        return rows

    def _existing_reversal_for(self, records: Sequence[TransactionRecordInput]) -> DuplicateReversalError | None:
        for rec in records:
            if rec.reference_type is not ReferenceType.REVERSAL or rec.reference_id is None:
                continue
            found = self.query_by_reference(rec.company_id, rec.reference_id, ReferenceType.REVERSAL)
            if found:
                return DuplicateReversalError(
                    f"lançamento {rec.reference_id} já foi estornado",
                    original_id=int(rec.reference_id),
                    reversal_id=found[0].id,
                )
        return None

    def append(self, record: TransactionRecordInput) -> Transaction:
        with self.transaction():
            (row,) = self._write([record], batch_id=None)
        self.db.refresh(row)
        self.log_committed(
            logger,
            "ledger append company_id=%s id=%s type=%s amount=%s ref=%s:%s",
            row.company_id, row.id, row.type, row.amount, row.reference_type, row.reference_id,
        )
        return row

    def append_batch(self, records: Sequence[TransactionRecordInput]) -> List[Transaction]:
        """Append atômico: todos os lançamentos entram (com o mesmo batch_id) ou nenhum."""
        if not records:
            return []
        batch_id = uuid4().hex
        with self.transaction():
            rows = self._write(records, batch_id=batch_id)
        for row in rows:
            self.db.refresh(row)
        self.log_committed(
            logger, "ledger batch appended batch_id=%s size=%s ids=%s", batch_id, len(rows), [r.id for r in rows]
        )
        return rows

    def get(self, company_id: int, record_id: int, *, lock: bool = False) -> Optional[Transaction]:
        q = select(Transaction).where(Transaction.id == record_id).where(Transaction.company_id == company_id)
        if lock:
            # Postgres: serializa estorno/liquidação concorrentes do mesmo lançamento.
            # populate_existing: relê as colunas mesmo se o objeto já está na sessão
            q = q.with_for_update().execution_options(populate_existing=True)
        try:
            return self.db.scalar(q)
        except SQLAlchemyError as e:
            logger.exception("ledger store read failed id=%s", record_id)
            raise StorageError(f"falha ao consultar o banco: {_db_message(e)}") from e

    def query_by_company(self, company_id: int, filters: RecordFilters | None = None) -> List[Transaction]:
        f = filters or RecordFilters()
        q = select(Transaction).where(Transaction.company_id == company_id)
        if f.start is not None:
            q = q.where(Transaction.created_at >= f.start)
        if f.end is not None:
            q = q.where(Transaction.created_at <= f.end)
        if f.type is not None:
            q = q.where(Transaction.type == f.type.value)
        if f.status is not None:
            q = q.where(Transaction.status == f.status.value)
        if f.reference_type is not None:
            q = q.where(Transaction.reference_type == f.reference_type.value)
        if f.origin is not None:
            q = q.where(Transaction.origin == f.origin.value)
        if f.category is not None:
            q = q.where(Transaction.category == f.category)
        q = q.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        if f.offset:
            q = q.offset(f.offset)
        if f.limit is not None:
            q = q.limit(f.limit)
        try:
            return list(self.db.scalars(q))
        except SQLAlchemyError as e:
            logger.exception("ledger store query failed company_id=%s", company_id)
            raise StorageError(f"falha ao consultar o banco: {_db_message(e)}") from e

    def query_by_reference(
        self, company_id: int, reference_id: str, reference_type: ReferenceType | None = None
    ) -> List[Transaction]:
        q = (
            select(Transaction)
            .where(Transaction.company_id == company_id)
            .where(Transaction.reference_id == str(reference_id))
        )
        if reference_type is not None:
            q = q.where(Transaction.reference_type == reference_type.value)
        q = q.order_by(Transaction.id.asc())
        try:
            return list(self.db.scalars(q))
        except SQLAlchemyError as e:
            logger.exception("ledger store query failed reference_id=%s", reference_id)
            raise StorageError(f"falha ao consultar o banco: {_db_message(e)}") from e

    def mark_paid(self, record: Transaction) -> Transaction:
        # lê o status antes de alterar: o guard do model precisa do valor antigo
        if record.status != Status.PENDING.value:
            raise ImmutableRecordError(f"lançamento {record.id}: só pending -> paid é permitido")
        with self.transaction():
            record.status = Status.PAID.value
            self.db.flush()
        self.db.refresh(record)
        self.log_committed(logger, "ledger settle company_id=%s id=%s", record.company_id, record.id)
        return record


def _db_message(e: SQLAlchemyError) -> str:
    orig = getattr(e, "orig", None)
    return str(orig) if orig is not None else str(e)
