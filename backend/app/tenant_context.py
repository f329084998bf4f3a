from sqlalchemy import text
from sqlalchemy.orm import Session

def set_tenant_on_session(db: Session, company_id: int) -> None:
    """
    Define a empresa (tenant) na sessão ativa.

    - Postgres: SET app.company_id = <id> (para RLS / policies)
    - SQLite (lab): guarda em db.info["company_id"] para filtros em nível ORM
    """
    dialect = db.get_bind().dialect.name
    if str(dialect).startswith("postgres"):
        db.execute(text("SELECT set_config('app.company_id', :cid, false)"), {"cid": str(company_id)})
    db.info["company_id"] = company_id
