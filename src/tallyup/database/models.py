"""SQLAlchemy models for tallyup database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    JSON,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

from tallyup.utils.trigram import trigram_similarity

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Document(Base):
    """Uploaded document model."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    filename = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    bank_statements = relationship("BankStatement", back_populates="document", cascade="all, delete-orphan")


class BankStatement(Base):
    """Bank statement model."""

    __tablename__ = "bank_statements"

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    account_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    document = relationship("Document", back_populates="bank_statements")
    transactions = relationship("BankTransaction", back_populates="statement", cascade="all, delete-orphan")


class Receipt(Base):
    """Receipt model. Totals are stored unsigned and treated as expenses."""

    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    merchant_name = Column(String, nullable=True)
    description = Column(String, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True)
    transaction_flags = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class BankTransaction(Base):
    """Bank statement transaction model.

    There is deliberately no user_id column: ownership is resolved through
    bank_statements -> documents.
    """

    __tablename__ = "bank_transactions"

    id = Column(Integer, primary_key=True)
    bank_statement_id = Column(Integer, ForeignKey("bank_statements.id"), nullable=False)
    merchant_name = Column(String, nullable=True)
    description = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_date = Column(Date, nullable=True)
    currency = Column(String(3), default="USD", nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True)
    transaction_flags = Column(JSON(none_as_null=True), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    statement = relationship("BankStatement", back_populates="transactions")


class Category(Base):
    """Category model. Rows without a user are system categories."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    category_type = Column(String, default="expense", nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Business(Base):
    """Business model."""

    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class CategoryRule(Base):
    """Categorization rule model."""

    __tablename__ = "category_rules"

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    field = Column(String, nullable=False)
    match_type = Column(String, nullable=False)
    value = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True)
    display_name = Column(String, nullable=True)
    is_enabled = Column(Boolean, default=True, nullable=False)
    source = Column(String, nullable=True)
    created_from = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    """Expose trigram similarity to SQLite as similarity(a, b)."""
    dbapi_connection.create_function("similarity", 2, trigram_similarity, deterministic=True)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine with the similarity() SQL function available.

    PostgreSQL must have the pg_trgm extension installed; SQLite gets the
    Python implementation registered on every new connection.
    """
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _register_sqlite_functions)
    return engine


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_db_engine(database_url)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
