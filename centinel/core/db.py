"""DB engine, ORM tables, and tenant-scoped sessions for the Centinel ledger service.

Every session handed to the services is bound to one account through ``session.info``. Two
session-level hooks enforce tenant isolation centrally, so no service query can reach another
account's rows:

- ``do_orm_execute`` adds an ``account_id`` criterion for every tenant-scoped entity to each ORM
  SELECT, UPDATE and DELETE.
- ``before_flush`` refuses to insert, modify or delete rows owned by another account.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from itertools import chain

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    ORMExecuteState,
    Session,
    mapped_column,
    sessionmaker,
    with_loader_criteria,
)

from centinel.core.errors import Unauthorized
from centinel.core.models import DEFAULT_AVATAR, Category
from centinel.core.utils import utcnow

ACCOUNT_ID_LENGTH = 64
MONEY = Numeric(12, 2)
_CATEGORY_CHECK = "category IN ({})".format(", ".join(f"'{c.value}'" for c in Category))


def new_id() -> str:
    """Generate a primary key for a new row."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all ledger tables."""


class TenantScoped:
    """Mixin for rows owned by exactly one account, keyed by an ``account_id`` attribute."""


class Account(TenantScoped, Base):
    """A user's financial profile; its primary key is the user identity."""

    __tablename__ = "accounts"

    account_id: Mapped[str] = mapped_column("id", String(ACCOUNT_ID_LENGTH), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200))
    avatar_url: Mapped[str | None] = mapped_column(String(500))
    balance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Transaction(TenantScoped, Base):
    """A single income (positive) or expense (negative) entry."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(_CATEGORY_CHECK, name="ck_transactions_category"),
        Index("ix_transactions_account_date", "account_id", "date"),
        Index("ix_transactions_account_category", "account_id", "category"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(200))
    avatar: Mapped[str] = mapped_column(String(500), default=DEFAULT_AVATAR)
    category: Mapped[str] = mapped_column(String(32))
    date: Mapped[datetime] = mapped_column(DateTime)
    amount: Mapped[Decimal] = mapped_column(MONEY)
    recurring: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Budget(TenantScoped, Base):
    """A monthly spending limit for one category."""

    __tablename__ = "budgets"
    __table_args__ = (
        CheckConstraint(_CATEGORY_CHECK, name="ck_budgets_category"),
        CheckConstraint("maximum >= 0", name="ck_budgets_maximum"),
        UniqueConstraint("account_id", "category", name="uq_budgets_account_category"),
        UniqueConstraint("account_id", "theme", name="uq_budgets_account_theme"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    category: Mapped[str] = mapped_column(String(32))
    maximum: Mapped[Decimal] = mapped_column(MONEY)
    theme: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Pot(TenantScoped, Base):
    """A savings pot holding money set aside from the balance."""

    __tablename__ = "pots"
    __table_args__ = (
        CheckConstraint("target >= 0", name="ck_pots_target"),
        CheckConstraint("total >= 0", name="ck_pots_total"),
        UniqueConstraint("account_id", "theme", name="uq_pots_account_theme"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    target: Mapped[Decimal] = mapped_column(MONEY)
    total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    theme: Mapped[str] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


TENANT_ENTITIES = (Account, Transaction, Budget, Pot)


def _configure_sqlite(engine: Engine) -> None:
    """Enable foreign keys and take the write lock at BEGIN so SQLite transactions serialize."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: object, _connection_record: object) -> None:
        # let SQLAlchemy, not pysqlite, emit BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: object) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> Engine:
    """Create a SQLAlchemy engine using the configured database URL."""
    from centinel.core.settings import get_settings

    settings = get_settings()
    connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
    engine = create_engine(settings.database_url, echo=settings.database_echo, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db() -> None:
    """Create all ledger tables that do not exist yet."""
    Base.metadata.create_all(engine)


def tenant_session(account_id: str) -> Session:
    """Open a session whose every ORM statement is restricted to ``account_id``'s rows."""
    return SessionLocal(info={"account_id": account_id})


@event.listens_for(Session, "do_orm_execute")
def _scope_to_tenant(execute_state: ORMExecuteState) -> None:
    if execute_state.is_select and (execute_state.is_column_load or execute_state.is_relationship_load):
        return
    if not (execute_state.is_select or execute_state.is_update or execute_state.is_delete):
        return
    account_id = execute_state.session.info.get("account_id")
    if account_id is None:
        msg = "Session is not bound to an account"
        raise Unauthorized(msg)
    execute_state.statement = execute_state.statement.options(
        *(
            with_loader_criteria(entity, entity.account_id == account_id, include_aliases=True)
            for entity in TENANT_ENTITIES
        )
    )


@event.listens_for(Session, "before_flush")
def _check_tenant_writes(session: Session, _flush_context: object, _instances: object) -> None:
    account_id = session.info.get("account_id")
    for obj in chain(session.new, session.dirty, session.deleted):
        if isinstance(obj, TenantScoped) and (account_id is None or obj.account_id != account_id):
            msg = "Row does not belong to the caller"
            raise Unauthorized(msg)
