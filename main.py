from fastapi import FastAPI, HTTPException, Header, status
from fastapi.middleware.cors import CORSMiddleware
from typing import List, Dict, Optional
from datetime import datetime
import logging

from config import settings
from logging_config import setup_logging
from models import (
    UserCreate, User, GroupCreate, Group, MemberAdd, GroupRef,
    ExpenseCreate, ExpenseUpdate, Expense, SplitInput, SplitType,
    LedgerEntry, SettlementSuggestion, GroupBalances, GroupBalanceSummary, BalanceSummary,
    SettlementCreate, SettlementUpdate, Settlement, SettlementStatus,
)
from money import is_zero, round_money
from settlement_optimizer import SettlementOptimizer
from split_calculator import build_splits, SplitValidationError
from storage import storage

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

RECENT_EXPENSES_LIMIT = 50

app = FastAPI(
    title=settings.APP_NAME,
    description="Group expense splitting with balance and settlement tracking",
    version="1.0.0"
)

# CORS middleware to allow frontend connections
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===== HELPERS =====
def require_user(user_id: Optional[str]) -> str:
    if not user_id or storage.get_user(user_id) is None:
        raise HTTPException(status_code=401, detail="Not authorized, unknown user")
    return user_id


def get_member_group(group_id: str, user_id: str) -> Group:
    """Load a group the requesting user belongs to"""
    group = storage.get_group(group_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    if user_id not in group.members:
        logger.warning(f"User {user_id} denied access to group {group_id}")
        raise HTTPException(status_code=403, detail="Not a member of this group")
    return group


def group_ledger(group: Group) -> Dict[str, LedgerEntry]:
    expenses = storage.expenses_for_group(group.id, include_settled=False)
    return SettlementOptimizer.calculate_balances(group.id, expenses, users=storage.users_db)


def rounded_entry(entry: LedgerEntry) -> LedgerEntry:
    return LedgerEntry(
        user_id=entry.user_id,
        user=entry.user,
        total_paid=round_money(entry.total_paid),
        total_owed=round_money(entry.total_owed),
        net_balance=round_money(entry.net_balance),
    )


# ===== API ENDPOINTS =====
@app.get("/")
async def root():
    return {"message": "SplitX API", "status": "healthy"}


@app.post("/users/", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(user: UserCreate):
    """Create a new user"""
    return storage.add_user(User(**user.model_dump()))


@app.get("/users/{user_id}", response_model=User)
async def get_user(user_id: str):
    """Get user details"""
    user = storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.get("/users/", response_model=Dict[str, User])
async def list_users():
    """List all users"""
    return storage.users_db


@app.post("/groups/", response_model=Group, status_code=status.HTTP_201_CREATED)
async def create_group(group: GroupCreate, x_user_id: Optional[str] = Header(None)):
    """Create a new group with the requesting user as a member"""
    user_id = require_user(x_user_id)

    # Validate that all member IDs exist
    for member_id in group.member_ids:
        if storage.get_user(member_id) is None:
            raise HTTPException(status_code=400, detail=f"User {member_id} does not exist")

    members = [user_id] + [m for m in dict.fromkeys(group.member_ids) if m != user_id]
    new_group = Group(
        name=group.name,
        description=group.description,
        type=group.type,
        created_by=user_id,
        members=members,
    )
    logger.info(f"Group {new_group.id} created by {user_id} with {len(members)} members")
    return storage.add_group(new_group)


@app.get("/groups/", response_model=List[Group])
async def list_groups(x_user_id: Optional[str] = Header(None)):
    """List the groups the requesting user belongs to"""
    user_id = require_user(x_user_id)
    return storage.groups_for_user(user_id)


@app.get("/groups/{group_id}", response_model=Group)
async def get_group(group_id: str, x_user_id: Optional[str] = Header(None)):
    """Get group details"""
    return get_member_group(group_id, require_user(x_user_id))


@app.post("/groups/{group_id}/members", response_model=Group)
async def add_member(group_id: str, member: MemberAdd, x_user_id: Optional[str] = Header(None)):
    """Add an existing user to a group"""
    group = get_member_group(group_id, require_user(x_user_id))
    if storage.get_user(member.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    if member.user_id in group.members:
        raise HTTPException(status_code=400, detail="User is already a member")

    group.members.append(member.user_id)
    group.updated_at = datetime.now()
    return group


# ===== EXPENSES =====
@app.post("/expenses/", response_model=Expense, status_code=status.HTTP_201_CREATED)
async def create_expense(expense: ExpenseCreate, x_user_id: Optional[str] = Header(None)):
    """Create a new expense"""
    user_id = require_user(x_user_id)
    paid_by = expense.paid_by or user_id

    group = storage.get_group(expense.group)
    if group is None:
        raise HTTPException(status_code=404, detail="Group not found")
    if paid_by not in group.members:
        raise HTTPException(status_code=403, detail="Not a member of this group")

    try:
        splits = build_splits(expense.amount, expense.split_type, group.members, expense.splits)
    except SplitValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    new_expense = Expense(
        title=expense.title,
        amount=expense.amount,
        paid_by=paid_by,
        group=group.id,
        split_type=expense.split_type,
        splits=splits,
        description=expense.description,
        category=expense.category or "Other",
        date=expense.date or datetime.now(),
    )
    logger.info(f"Expense {new_expense.id} of {expense.amount} added to group {group.id}")
    return storage.add_expense(new_expense)


@app.get("/expenses/", response_model=List[Expense])
async def list_my_expenses(x_user_id: Optional[str] = Header(None)):
    """Get the most recent expenses across all of the requesting user's groups"""
    user_id = require_user(x_user_id)
    expenses = []
    for group in storage.groups_for_user(user_id):
        expenses.extend(storage.expenses_for_group(group.id))
    return sorted(expenses, key=lambda x: x.date, reverse=True)[:RECENT_EXPENSES_LIMIT]


@app.get("/expenses/group/{group_id}", response_model=List[Expense])
async def list_group_expenses(group_id: str, x_user_id: Optional[str] = Header(None)):
    """Get all expenses for a group, newest first"""
    get_member_group(group_id, require_user(x_user_id))
    expenses = storage.expenses_for_group(group_id)
    return sorted(expenses, key=lambda x: x.date, reverse=True)


def get_member_expense(expense_id: str, user_id: str):
    expense = storage.get_expense(expense_id)
    if expense is None:
        raise HTTPException(status_code=404, detail="Expense not found")

    group = storage.get_group(expense.group)
    if group is None or user_id not in group.members:
        raise HTTPException(status_code=403, detail="Not authorized")
    return expense, group


@app.get("/expenses/{expense_id}", response_model=Expense)
async def get_expense(expense_id: str, x_user_id: Optional[str] = Header(None)):
    """Get expense details"""
    expense, _ = get_member_expense(expense_id, require_user(x_user_id))
    return expense


@app.put("/expenses/{expense_id}", response_model=Expense)
async def update_expense(expense_id: str, update: ExpenseUpdate, x_user_id: Optional[str] = Header(None)):
    """Update an expense, recomputing splits when amount, split type or shares change"""
    expense, group = get_member_expense(expense_id, require_user(x_user_id))

    amount = update.amount if update.amount is not None else expense.amount
    split_type = update.split_type or expense.split_type
    # New shares on their own imply a custom split
    if update.splits and update.split_type is None:
        split_type = SplitType.CUSTOM
    splits = expense.splits

    if update.amount is not None or update.split_type is not None or update.splits:
        shares = update.splits
        if split_type == SplitType.CUSTOM and not shares:
            # Existing shares must still add up to the new amount
            shares = [SplitInput(user_id=s.user_id, amount=s.amount) for s in expense.splits]
        try:
            splits = build_splits(amount, split_type, group.members, shares)
        except SplitValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))

    changes = {k: v for k, v in update.model_dump(exclude={"splits"}).items() if v is not None}
    changes.update({"amount": amount, "split_type": split_type, "splits": splits})
    updated = expense.model_copy(update=changes)
    return storage.add_expense(updated)


@app.delete("/expenses/{expense_id}")
async def delete_expense(expense_id: str, x_user_id: Optional[str] = Header(None)):
    """Delete an expense"""
    get_member_expense(expense_id, require_user(x_user_id))
    storage.delete_expense(expense_id)
    logger.info(f"Expense {expense_id} deleted")
    return {"message": "Expense removed"}


# ===== BALANCES =====
@app.get("/balances/group/{group_id}", response_model=GroupBalances)
async def get_group_balances(group_id: str, x_user_id: Optional[str] = Header(None)):
    """Get balances and suggested settlements for a group"""
    group = get_member_group(group_id, require_user(x_user_id))

    expenses = storage.expenses_for_group(group.id, include_settled=False)
    result = SettlementOptimizer.optimize_settlements(group.id, expenses, users=storage.users_db)

    return GroupBalances(
        group=GroupRef(id=group.id, name=group.name),
        balances=[rounded_entry(entry) for entry in result["balances"].values()],
        settlements=result["optimal_settlements"],
    )


@app.get("/balances/summary", response_model=BalanceSummary)
async def get_balance_summary(x_user_id: Optional[str] = Header(None)):
    """Get the requesting user's balance across all of their groups"""
    user_id = require_user(x_user_id)

    total_paid = 0.0
    total_owed = 0.0
    group_balances = []

    for group in storage.groups_for_user(user_id):
        expenses = storage.expenses_for_group(group.id, include_settled=False)
        entry = SettlementOptimizer.calculate_balances(group.id, expenses, for_user=user_id)

        # No activity in this group
        if is_zero(entry.total_paid) and is_zero(entry.total_owed):
            continue

        total_paid += entry.total_paid
        total_owed += entry.total_owed
        group_balances.append(GroupBalanceSummary(
            group=GroupRef(id=group.id, name=group.name),
            total_paid=round_money(entry.total_paid),
            total_owed=round_money(entry.total_owed),
            net_balance=round_money(entry.net_balance),
        ))

    return BalanceSummary(
        total_paid=round_money(total_paid),
        total_owed=round_money(total_owed),
        net_balance=round_money(total_paid - total_owed),
        group_balances=group_balances,
    )


# ===== SETTLEMENTS =====
@app.get("/settlements/group/{group_id}", response_model=List[Settlement])
async def list_settlements(group_id: str, x_user_id: Optional[str] = Header(None)):
    """Get settlements recorded for a group, newest first"""
    get_member_group(group_id, require_user(x_user_id))
    settlements = storage.settlements_for_group(group_id)
    return sorted(settlements, key=lambda x: x.created_at, reverse=True)


@app.get("/settlements/group/{group_id}/suggestions", response_model=List[SettlementSuggestion])
async def get_settlement_suggestions(group_id: str, x_user_id: Optional[str] = Header(None)):
    """Get suggested settlements for a group"""
    group = get_member_group(group_id, require_user(x_user_id))
    return SettlementOptimizer.minimize_transactions(group_ledger(group))


@app.post("/settlements/", response_model=Settlement, status_code=status.HTTP_201_CREATED)
async def create_settlement(settlement: SettlementCreate, x_user_id: Optional[str] = Header(None)):
    """Record a pending settlement between two group members"""
    user_id = require_user(x_user_id)

    if not settlement.from_user or not settlement.to_user or settlement.amount <= 0:
        raise HTTPException(status_code=400, detail="Please provide all required fields")

    group = get_member_group(settlement.group_id, user_id)

    if user_id not in (settlement.from_user, settlement.to_user):
        raise HTTPException(status_code=403, detail="Can only create settlements involving yourself")

    if settlement.from_user == settlement.to_user:
        raise HTTPException(status_code=400, detail="Cannot settle with yourself")
    if settlement.from_user not in group.members or settlement.to_user not in group.members:
        raise HTTPException(status_code=400, detail="Both users must be members of the group")

    for expense_id in settlement.expense_ids:
        expense = storage.get_expense(expense_id)
        if expense is None or expense.group != group.id:
            logger.warning(f"Settlement in group {group.id} rejected for expense {expense_id}")
            raise HTTPException(status_code=400, detail=f"Expense {expense_id} does not belong to this group")

    new_settlement = Settlement(
        from_user=settlement.from_user,
        to_user=settlement.to_user,
        group=settlement.group_id,
        amount=settlement.amount,
        expenses=settlement.expense_ids,
    )
    logger.info(
        f"Settlement {new_settlement.id}: {settlement.from_user} -> {settlement.to_user} "
        f"{settlement.amount} in group {settlement.group_id}"
    )
    return storage.add_settlement(new_settlement)


@app.put("/settlements/{settlement_id}", response_model=Settlement)
async def update_settlement(settlement_id: str, update: SettlementUpdate, x_user_id: Optional[str] = Header(None)):
    """Update settlement status; paying it settles the linked expenses"""
    user_id = require_user(x_user_id)

    settlement = storage.get_settlement(settlement_id)
    if settlement is None:
        raise HTTPException(status_code=404, detail="Settlement not found")

    if user_id not in (settlement.from_user, settlement.to_user):
        raise HTTPException(status_code=403, detail="Not authorized")

    if update.status:
        settlement.status = update.status
    if update.payment_id:
        settlement.payment_id = update.payment_id
    if update.status == SettlementStatus.PAID:
        settlement.payment_date = datetime.now()
        marked = storage.mark_expenses_settled(settlement.expenses)
        logger.info(f"Settlement {settlement_id} paid, {marked} expenses marked settled")

    settlement.updated_at = datetime.now()
    return settlement


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
