"""
Core Data Models for the TrackRise ledger

These models define the schemas for everything that flows between the
capture pipeline, the ledger store and the sync reconciler.

CRITICAL: A TransactionDraft is PROPOSED data. It only becomes a
Transaction after the user confirms it, and only a Transaction is ever
persisted.

Amount, description and category rules are enforced by the validation
layer (see ``trackrise.validation``) rather than here, so that a rejected
insert produces a full list of issues instead of a single parse error.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from trackrise.models.currency import is_supported_currency


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation used throughout the ledger."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def new_transaction_id() -> str:
    """Globally unique transaction id. Ids are never reused."""
    return f"txn_{uuid4().hex}"


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class EntryMethod(str, Enum):
    """
    How a transaction entered the system.

    Fixed at creation (for captures: when the capture starts) and never
    changed afterwards.
    """
    MANUAL = "manual"
    VOICE = "voice"
    PHOTO = "photo"


class SyncStatus(str, Enum):
    """
    Remote synchronization lifecycle of a transaction.

    PENDING on insert; SYNCED only after the remote store accepted the
    upsert. Nothing moves a row back to PENDING automatically.
    """
    PENDING = "pending"
    SYNCED = "synced"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Category(BaseModel):
    """A transaction category. Seeded at first run, not user-editable."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(..., description="Icon token for the UI layer")
    type: TransactionType
    color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    # Income
    Category(id="sales", name="Sales", icon="shopping-bag", type=TransactionType.INCOME, color="#00FF91"),
    Category(id="services", name="Services", icon="briefcase", type=TransactionType.INCOME, color="#007FFF"),
    Category(id="loans", name="Loans", icon="credit-card", type=TransactionType.INCOME, color="#FFD700"),
    Category(id="other_income", name="Other Income", icon="plus-circle", type=TransactionType.INCOME, color="#FF8300"),
    # Expense
    Category(id="inventory", name="Inventory", icon="package", type=TransactionType.EXPENSE, color="#FF8300"),
    Category(id="rent", name="Rent", icon="home", type=TransactionType.EXPENSE, color="#007FFF"),
    Category(id="salaries", name="Salaries", icon="users", type=TransactionType.EXPENSE, color="#00FF91"),
    Category(id="transport", name="Transport", icon="truck", type=TransactionType.EXPENSE, color="#FFD700"),
    Category(id="utilities", name="Utilities", icon="zap", type=TransactionType.EXPENSE, color="#FF0000"),
    Category(id="other_expense", name="Other Expense", icon="minus-circle", type=TransactionType.EXPENSE, color="#808080"),
)

# Used when nothing more specific can be inferred
FALLBACK_CATEGORY = {
    TransactionType.INCOME: "sales",
    TransactionType.EXPENSE: "other_expense",
}


class AppSettings(BaseModel):
    """
    Per-installation user settings.

    Exactly one record exists. It is always read and written as a whole.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    default_currency: str = Field(default="KES", min_length=3, max_length=3)
    language: str = Field(default="en", min_length=2, max_length=10)
    theme: Theme = Theme.LIGHT
    notifications: bool = True
    auto_sync: bool = True
    sync_only_on_wifi: bool = True

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.upper()
        if not is_supported_currency(v):
            raise ValueError(f"Unsupported currency: {v}")
        return v


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    An unpersisted, user-reviewable candidate transaction.

    Produced by the extraction engine (or a manual entry form). The user
    may edit any field before confirming it.
    """

    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency_code: str = Field(..., min_length=3, max_length=3)
    type: TransactionType
    category: str
    description: str
    date: datetime = Field(default_factory=utcnow)
    entry_method: EntryMethod = EntryMethod.MANUAL
    image_path: Optional[str] = None

    raw_text: Optional[str] = Field(
        default=None,
        description="Text the draft was extracted from, for review"
    )

    @field_validator("date")
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return as_naive_utc(v)


class Transaction(BaseModel):
    """
    A confirmed ledger entry.

    Transactions are write-once: the only field that changes after
    insertion is ``sync_status``.
    """

    id: str = Field(default_factory=new_transaction_id, min_length=1)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency_code: str = Field(..., min_length=3, max_length=3)
    type: TransactionType
    category: str
    description: str
    date: datetime = Field(..., description="Logical business date")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    entry_method: EntryMethod = EntryMethod.MANUAL
    image_path: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @property
    def synced(self) -> bool:
        return self.sync_status == SyncStatus.SYNCED

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @model_validator(mode="after")
    def validate_timestamps(self) -> "Transaction":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        return self

    @classmethod
    def from_draft(cls, draft: TransactionDraft) -> "Transaction":
        """Create a new, unsynced transaction from a confirmed draft."""
        now = utcnow()
        return cls(
            amount=draft.amount,
            currency_code=draft.currency_code,
            type=draft.type,
            category=draft.category,
            description=draft.description,
            date=draft.date,
            created_at=now,
            updated_at=now,
            entry_method=draft.entry_method,
            image_path=draft.image_path,
        )


class TransactionFilter(BaseModel):
    """Optional filters for ledger queries. Date bounds are inclusive days."""

    type: Optional[TransactionType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode="after")
    def validate_range(self) -> "TransactionFilter":
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self


class RemoteTransactionRecord(BaseModel):
    """
    The shape of a transaction in the remote store.

    Local image paths never leave the device; only ``has_image`` does.
    ``pushed_at`` is stamped by the remote store when the record is
    written there and is None for records that have not been pushed.
    """

    id: str
    amount: Decimal
    currency_code: str
    type: TransactionType
    category: str
    description: str
    date: datetime
    created_at: datetime
    updated_at: datetime
    entry_method: EntryMethod
    has_image: bool = False
    pushed_at: Optional[datetime] = None

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def normalize_timestamps(cls, v: datetime) -> datetime:
        return as_naive_utc(v)

    @field_validator("pushed_at")
    @classmethod
    def normalize_pushed_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v) if v is not None else None

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "RemoteTransactionRecord":
        return cls(
            id=transaction.id,
            amount=transaction.amount,
            currency_code=transaction.currency_code,
            type=transaction.type,
            category=transaction.category,
            description=transaction.description,
            date=transaction.date,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
            entry_method=transaction.entry_method,
            has_image=bool(transaction.image_path),
        )

    def to_transaction(self) -> Transaction:
        """Local copy of a remote record; it is already synced by definition."""
        return Transaction(
            id=self.id,
            amount=self.amount,
            currency_code=self.currency_code,
            type=self.type,
            category=self.category,
            description=self.description,
            date=self.date,
            created_at=self.created_at,
            updated_at=self.updated_at,
            entry_method=self.entry_method,
            sync_status=SyncStatus.SYNCED,
        )


# =============================================================================
# SUMMARIES
# =============================================================================

class LedgerSummary(BaseModel):
    """Income and expense totals over a date range."""

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")


class DashboardSummary(LedgerSummary):
    """Totals for a dashboard period."""

    period_start: datetime
    period_end: datetime

    @property
    def net_profit(self) -> Decimal:
        return self.total_income - self.total_expenses
