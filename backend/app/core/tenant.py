from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db import get_db
from app.core.security import require_auth
from app.models.company import Company
from app.models.company_user import CompanyUser
from app.tenant_context import set_tenant_on_session


def get_current_company_id(
    payload: dict = Depends(require_auth),
    db: Session = Depends(get_db),
) -> int:
    """
    Resolve a empresa (tenant) real a partir do email (sub) do JWT
    e injeta o tenant na MESMA sessão do request.
    """
    email = payload.get("sub")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token inválido (sub ausente)",
        )

    member = db.scalar(select(CompanyUser).where(CompanyUser.email == email))
    if not member:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="usuário não pertence a nenhuma empresa",
        )

    company = db.get(Company, member.company_id)
    if company is None or company.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="empresa inativa ou inexistente",
        )

    set_tenant_on_session(db, member.company_id)
    return member.company_id
