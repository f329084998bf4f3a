"""
Erros de domínio do ledger.

Nenhuma operação do ledger engole erros: propaga o primeiro e para.
A camada HTTP traduz cada classe para um status (ver app.main).
"""


class LedgerError(Exception):
    """Base de todos os erros do ledger."""

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def as_detail(self) -> dict:
        return {"error_code": self.error_code, "message": self.message, **self.context}


class ValidationError(LedgerError):
    """Entrada malformada; rejeitada antes de qualquer chamada ao store."""

    error_code = "VALIDATION_ERROR"


class RecordNotFoundError(LedgerError):
    error_code = "NOT_FOUND"


class StorageError(LedgerError):
    """Store indisponível ou escrita rejeitada. Sem retry automático nesta camada."""

    error_code = "STORAGE_ERROR"


class DuplicateReversalError(LedgerError):
    """Já existe estorno para o lançamento original."""

    error_code = "DUPLICATE_REVERSAL"

    def __init__(self, message: str, *, original_id: int, reversal_id: int | None = None):
        super().__init__(message, original_id=original_id, reversal_id=reversal_id)
        self.original_id = original_id
        self.reversal_id = reversal_id


class SaleAlreadyRefundedError(LedgerError):
    error_code = "SALE_ALREADY_REFUNDED"


class ImmutableRecordError(LedgerError):
    """Tentativa de alterar/excluir um lançamento já gravado."""

    error_code = "IMMUTABLE_RECORD"
