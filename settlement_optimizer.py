from typing import Dict, List, Mapping, Optional, Iterable
import logging

from models import Expense, LedgerEntry, SettlementSuggestion, User
from money import TOLERANCE, is_zero, round_money

logger = logging.getLogger(__name__)


class SettlementOptimizer:
    @staticmethod
    def calculate_balances(
        group_id: str,
        expenses: Iterable[Expense],
        for_user: Optional[str] = None,
        users: Optional[Mapping[str, User]] = None,
    ):
        """Calculate paid, owed and net balance for each user in a group.

        Settled expenses and expenses from other groups are skipped. ``users``
        resolves ids to user records for the ``user`` field of each entry.
        With ``for_user`` set, only that user's entry is returned, or a zero
        entry if they have no activity.
        """
        users = users or {}
        balances: Dict[str, LedgerEntry] = {}

        def entry_for(user_id: str) -> LedgerEntry:
            if user_id not in balances:
                balances[user_id] = LedgerEntry(user_id=user_id, user=users.get(user_id))
            return balances[user_id]

        folded = 0
        for expense in expenses:
            if expense.is_settled or expense.group != group_id:
                continue
            folded += 1

            entry_for(expense.paid_by).total_paid += expense.amount

            for split in expense.splits:
                entry_for(split.user_id).total_owed += split.amount

        for entry in balances.values():
            entry.net_balance = entry.total_paid - entry.total_owed

        logger.debug(f"Folded {folded} expenses into {len(balances)} balances for group {group_id}")

        if for_user is not None:
            if for_user not in balances:
                return LedgerEntry(user_id=for_user)
            return balances[for_user]

        return balances

    @staticmethod
    def minimize_transactions(balances: Mapping[str, LedgerEntry]) -> List[SettlementSuggestion]:
        """Pair the biggest debtors with the biggest creditors.

        Greedy, so at most n - 1 transfers for n non-zero balances, but not
        guaranteed to be the fewest possible. Users with equal balances keep
        the order they had in ``balances``.
        """
        entries = [
            {"user_id": user_id, "balance": entry.net_balance, "user": entry.user}
            for user_id, entry in balances.items()
            if abs(entry.net_balance) > TOLERANCE
        ]
        # list.sort is stable
        entries.sort(key=lambda item: item["balance"])

        settlements = []
        i = 0
        j = len(entries) - 1

        while i < j:
            debtor = entries[i]
            creditor = entries[j]

            if is_zero(debtor["balance"]):
                i += 1
                continue
            if is_zero(creditor["balance"]):
                j -= 1
                continue

            amount = min(abs(debtor["balance"]), creditor["balance"])

            settlements.append(SettlementSuggestion(
                from_user=debtor["user_id"],
                from_user_name=debtor["user"].name if debtor["user"] else debtor["user_id"],
                to_user=creditor["user_id"],
                to_user_name=creditor["user"].name if creditor["user"] else creditor["user_id"],
                amount=round_money(amount),
            ))

            # Full precision here, rounding only on the way out
            debtor["balance"] += amount
            creditor["balance"] -= amount

            if is_zero(debtor["balance"]):
                i += 1
            if is_zero(creditor["balance"]):
                j -= 1

        return settlements

    @staticmethod
    def optimize_settlements(group_id, expenses, users=None):
        """Main method to calculate balances and suggested settlements"""
        balances = SettlementOptimizer.calculate_balances(group_id, expenses, users=users)
        settlements = SettlementOptimizer.minimize_transactions(balances)

        return {
            "balances": balances,
            "optimal_settlements": settlements
        }
