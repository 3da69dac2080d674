from typing import Dict, List, Optional

from models import User, Group, Expense, Settlement


class InMemoryStorage:
    """Mock database (in production, use a real database)"""

    def __init__(self):
        self.users_db: Dict[str, User] = {}
        self.groups_db: Dict[str, Group] = {}
        self.expenses_db: Dict[str, Expense] = {}
        self.settlements_db: Dict[str, Settlement] = {}

    # ===== USERS =====
    def add_user(self, user: User) -> User:
        self.users_db[user.id] = user
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users_db.get(user_id)

    # ===== GROUPS =====
    def add_group(self, group: Group) -> Group:
        self.groups_db[group.id] = group
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        return self.groups_db.get(group_id)

    def groups_for_user(self, user_id: str) -> List[Group]:
        return [group for group in self.groups_db.values() if user_id in group.members]

    # ===== EXPENSES =====
    def add_expense(self, expense: Expense) -> Expense:
        self.expenses_db[expense.id] = expense
        return expense

    def get_expense(self, expense_id: str) -> Optional[Expense]:
        return self.expenses_db.get(expense_id)

    def delete_expense(self, expense_id: str) -> Optional[Expense]:
        return self.expenses_db.pop(expense_id, None)

    def expenses_for_group(self, group_id: str, include_settled: bool = True) -> List[Expense]:
        return [
            expense for expense in self.expenses_db.values()
            if expense.group == group_id and (include_settled or not expense.is_settled)
        ]

    def mark_expenses_settled(self, expense_ids: List[str]) -> int:
        marked = 0
        for expense_id in expense_ids:
            expense = self.expenses_db.get(expense_id)
            if expense is not None and not expense.is_settled:
                expense.is_settled = True
                marked += 1
        return marked

    # ===== SETTLEMENTS =====
    def add_settlement(self, settlement: Settlement) -> Settlement:
        self.settlements_db[settlement.id] = settlement
        return settlement

    def get_settlement(self, settlement_id: str) -> Optional[Settlement]:
        return self.settlements_db.get(settlement_id)

    def settlements_for_group(self, group_id: str) -> List[Settlement]:
        return [s for s in self.settlements_db.values() if s.group == group_id]

    def clear(self):
        self.users_db.clear()
        self.groups_db.clear()
        self.expenses_db.clear()
        self.settlements_db.clear()


storage = InMemoryStorage()
