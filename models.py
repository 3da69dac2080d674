from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import Enum
from uuid import uuid4


def new_id() -> str:
    return uuid4().hex


class SplitType(str, Enum):
    EQUAL = "equal"
    CUSTOM = "custom"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


# ===== USERS & GROUPS =====
class UserCreate(BaseModel):
    name: str = Field(..., description="Full name of the user")
    email: str = Field(..., description="Email address of the user")

    @field_validator('name')
    @classmethod
    def name_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Name must not be empty')
        return v.strip()


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    created_at: datetime = Field(default_factory=datetime.now)


class GroupCreate(BaseModel):
    name: str = Field(..., description="Name of the group")
    description: str = ""
    type: str = Field("Friends", description="Trip, Roommates, Friends or Other")
    member_ids: List[str] = Field(default_factory=list, description="Initial members besides the creator")


class Group(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    type: str = "Friends"
    created_by: str
    members: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class MemberAdd(BaseModel):
    user_id: str


# ===== EXPENSES =====
class Split(BaseModel):
    user_id: str
    amount: float = Field(..., ge=0)
    percentage: float = 0


class SplitInput(BaseModel):
    user_id: str
    amount: float = Field(..., ge=0)


class ExpenseCreate(BaseModel):
    title: str = Field(..., description="Short title of the expense")
    amount: float = Field(..., gt=0, description="Amount of the expense")
    group: str = Field(..., description="ID of the group this expense belongs to")
    paid_by: Optional[str] = Field(None, description="Payer, defaults to the requesting user")
    split_type: SplitType = SplitType.EQUAL
    splits: Optional[List[SplitInput]] = None
    description: str = ""
    category: Optional[str] = None
    date: Optional[datetime] = None

    @field_validator('title')
    @classmethod
    def title_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Title must not be empty')
        return v.strip()


class ExpenseUpdate(BaseModel):
    title: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    split_type: Optional[SplitType] = None
    splits: Optional[List[SplitInput]] = None
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[datetime] = None


class Expense(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    amount: float = Field(..., gt=0)
    paid_by: str
    group: str
    split_type: SplitType = SplitType.EQUAL
    splits: List[Split] = Field(default_factory=list)
    description: str = ""
    category: str = "Other"
    date: datetime = Field(default_factory=datetime.now)
    is_settled: bool = False
    created_at: datetime = Field(default_factory=datetime.now)


# ===== BALANCES =====
class LedgerEntry(BaseModel):
    user_id: Optional[str] = None
    user: Optional[User] = None
    total_paid: float = 0
    total_owed: float = 0
    net_balance: float = 0


class SettlementSuggestion(BaseModel):
    from_user: str
    from_user_name: str
    to_user: str
    to_user_name: str
    amount: float


class GroupRef(BaseModel):
    id: str
    name: str


class GroupBalances(BaseModel):
    group: GroupRef
    balances: List[LedgerEntry]
    settlements: List[SettlementSuggestion]


class GroupBalanceSummary(BaseModel):
    group: GroupRef
    total_paid: float
    total_owed: float
    net_balance: float


class BalanceSummary(BaseModel):
    total_paid: float
    total_owed: float
    net_balance: float
    group_balances: List[GroupBalanceSummary]


# ===== SETTLEMENTS =====
class SettlementCreate(BaseModel):
    from_user: str
    to_user: str
    group_id: str
    amount: float
    expense_ids: List[str] = Field(default_factory=list)


class SettlementUpdate(BaseModel):
    status: Optional[SettlementStatus] = None
    payment_id: Optional[str] = None


class Settlement(BaseModel):
    id: str = Field(default_factory=new_id)
    from_user: str
    to_user: str
    group: str
    amount: float = Field(..., ge=0)
    status: SettlementStatus = SettlementStatus.PENDING
    payment_id: str = ""
    payment_date: Optional[datetime] = None
    expenses: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

