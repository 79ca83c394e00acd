"""SQLAlchemy ORM tables for the on-device ledger."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from trackrise.models.transaction import (
    EntryMethod,
    SyncStatus,
    Theme,
    TransactionType,
)

# The settings table only ever holds this row
SETTINGS_ROW_ID = 1


class Base(DeclarativeBase):
    """Base class for all ledger tables."""

    pass


class CategoryRow(Base):
    """Seeded reference categories."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[TransactionType] = mapped_column(SQLEnum(TransactionType), nullable=False)
    color: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<CategoryRow {self.id}>"


class TransactionRow(Base):
    """One ledger entry."""

    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    type: Mapped[TransactionType] = mapped_column(SQLEnum(TransactionType), nullable=False)
    category: Mapped[str] = mapped_column(
        String(50), ForeignKey("categories.id"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    entry_method: Mapped[EntryMethod] = mapped_column(SQLEnum(EntryMethod), nullable=False)
    image_path: Mapped[Optional[str]] = mapped_column(String(500))
    sync_status: Mapped[SyncStatus] = mapped_column(
        SQLEnum(SyncStatus), nullable=False, default=SyncStatus.PENDING
    )

    __table_args__ = (
        Index("ix_transactions_date_created", "date", "created_at"),
        Index("ix_transactions_sync_status", "sync_status"),
        Index("ix_transactions_type_date", "type", "date"),
    )

    def __repr__(self) -> str:
        return f"<TransactionRow {self.id} {self.type.value} {self.amount}>"


class SettingsRow(Base):
    """The AppSettings singleton."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    default_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    language: Mapped[str] = mapped_column(String(10), nullable=False)
    theme: Mapped[Theme] = mapped_column(SQLEnum(Theme), nullable=False)
    notifications: Mapped[bool] = mapped_column(Boolean, nullable=False)
    auto_sync: Mapped[bool] = mapped_column(Boolean, nullable=False)
    sync_only_on_wifi: Mapped[bool] = mapped_column(Boolean, nullable=False)
