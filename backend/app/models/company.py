from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from app.db import Base

class Company(Base):
    """Empresa = tenant. Todo lançamento do ledger pertence a exatamente uma."""
    __tablename__ = "companies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    cnpj: Mapped[str | None] = mapped_column(String(14), unique=True, index=True, nullable=True)
    # active | suspended | blocked
    status: Mapped[str] = mapped_column(String(20), default="active")
    plan: Mapped[str] = mapped_column(String(40), default="basic")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
