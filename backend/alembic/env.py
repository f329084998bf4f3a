from pathlib import Path
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context
from app.core.settings import settings
from app.db import Base

# registra as tabelas do ledger no metadata (autogenerate)
from app.models.company import Company  # noqa: F401
from app.models.company_user import CompanyUser  # noqa: F401
from app.models.sale import Sale, SaleItem  # noqa: F401
from app.models.transaction import Transaction  # noqa: F401

config = context.config

BACKEND_DIR = Path(__file__).resolve().parents[1]


def _database_url() -> str:
    """DATABASE_URL do app; sqlite relativo vira absoluto a partir de backend/."""
    url = settings.DATABASE_URL
    prefix = "sqlite:///./"
    if url.startswith(prefix):
        return "sqlite:///" + (BACKEND_DIR / url[len(prefix):]).resolve().as_posix()
    return url


config.set_main_option("sqlalchemy.url", _database_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _is_sqlite(url: str | None) -> bool:
    return bool(url) and url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # sqlite não tem ALTER completo: migrações via batch (recria tabela)
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
