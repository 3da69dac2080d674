import pytest

from models import Expense, LedgerEntry, SplitType, User
from money import TOLERANCE
from settlement_optimizer import SettlementOptimizer
from split_calculator import equal_splits


def ledger_from(nets):
    return {
        uid: LedgerEntry(user_id=uid, net_balance=net, total_paid=max(net, 0), total_owed=max(-net, 0))
        for uid, net in nets.items()
    }


def apply_suggestions(nets, suggestions):
    remaining = dict(nets)
    for s in suggestions:
        remaining[s.from_user] += s.amount
        remaining[s.to_user] -= s.amount
    return remaining


# ===== BALANCES =====
def test_equal_split_scenario(make_expense):
    """300 paid by u1, split equally among three"""
    expense = make_expense(300, "u1", {"u1": 100, "u2": 100, "u3": 100})

    balances = SettlementOptimizer.calculate_balances("g1", [expense])

    assert balances["u1"].total_paid == 300
    assert balances["u1"].total_owed == 100
    assert balances["u1"].net_balance == 200
    for uid in ("u2", "u3"):
        assert balances[uid].total_paid == 0
        assert balances[uid].total_owed == 100
        assert balances[uid].net_balance == -100


def test_payer_outside_splits_is_owed_everything(make_expense):
    expense = make_expense(90, "u1", {"u2": 45, "u3": 45})

    balances = SettlementOptimizer.calculate_balances("g1", [expense])

    assert balances["u1"].total_owed == 0
    assert balances["u1"].net_balance == 90


def test_settled_and_foreign_expenses_are_skipped(make_expense):
    expenses = [
        make_expense(60, "u1", {"u1": 30, "u2": 30}),
        make_expense(500, "u2", {"u1": 250, "u2": 250}, is_settled=True),
        make_expense(80, "u3", {"u3": 40, "u4": 40}, group="other"),
    ]

    balances = SettlementOptimizer.calculate_balances("g1", expenses)

    assert set(balances) == {"u1", "u2"}
    assert balances["u1"].net_balance == 30
    assert balances["u2"].net_balance == -30


def test_for_user_returns_single_entry(make_expense):
    expense = make_expense(40, "u1", {"u1": 20, "u2": 20})

    entry = SettlementOptimizer.calculate_balances("g1", [expense], for_user="u2")

    assert entry.user_id == "u2"
    assert entry.net_balance == -20


def test_for_user_without_activity_gets_zero_entry(make_expense):
    expense = make_expense(40, "u1", {"u1": 20, "u2": 20})

    entry = SettlementOptimizer.calculate_balances("g1", [expense], for_user="nobody")

    assert entry.total_paid == 0
    assert entry.total_owed == 0
    assert entry.net_balance == 0
    assert entry.user is None


def test_users_are_resolved_when_given(make_expense):
    alice = User(id="u1", name="Alice", email="alice@example.com")
    expense = make_expense(40, "u1", {"u1": 20, "u2": 20})

    balances = SettlementOptimizer.calculate_balances("g1", [expense], users={"u1": alice})

    assert balances["u1"].user == alice
    assert balances["u2"].user is None


def test_balances_conserve_money(make_expense):
    expenses = [
        make_expense(120.5, "u1", {"u1": 40.17, "u2": 40.17, "u3": 40.16}),
        make_expense(75, "u2", {"u3": 25, "u4": 50}),
        make_expense(19.99, "u4", {"u1": 10, "u4": 9.99}),
    ]

    balances = SettlementOptimizer.calculate_balances("g1", expenses)

    total = sum(entry.net_balance for entry in balances.values())
    assert abs(total) <= TOLERANCE * len(balances)


def test_thirds_do_not_drift_across_runs():
    splits = equal_splits(100, ["u1", "u2", "u3"])
    expense = Expense(title="Dinner", amount=100, paid_by="u1", group="g1",
                      split_type=SplitType.EQUAL, splits=splits)

    first = SettlementOptimizer.calculate_balances("g1", [expense])
    second = SettlementOptimizer.calculate_balances("g1", [expense])

    assert abs(sum(s.amount for s in splits) - 100) <= TOLERANCE
    assert first == second
    assert first["u1"].net_balance == pytest.approx(66.6667, abs=TOLERANCE)
    assert abs(sum(e.net_balance for e in first.values())) <= TOLERANCE


def test_settling_expense_removes_it_from_balances(make_expense):
    lunch = make_expense(30, "u1", {"u1": 15, "u2": 15})
    taxi = make_expense(20, "u2", {"u1": 10, "u2": 10})

    before = SettlementOptimizer.calculate_balances("g1", [lunch, taxi])
    lunch.is_settled = True
    after = SettlementOptimizer.calculate_balances("g1", [lunch, taxi])
    again = SettlementOptimizer.calculate_balances("g1", [lunch, taxi])

    assert before["u1"].net_balance == 5
    assert after["u1"].net_balance == -10
    assert after == again


# ===== SETTLEMENTS =====
def test_equal_split_suggestions_in_stable_order():
    suggestions = SettlementOptimizer.minimize_transactions(ledger_from({"u1": 200, "u2": -100, "u3": -100}))

    assert [(s.from_user, s.to_user, s.amount) for s in suggestions] == [
        ("u2", "u1", 100),
        ("u3", "u1", 100),
    ]


def test_three_way_chain_needs_two_transfers():
    suggestions = SettlementOptimizer.minimize_transactions(ledger_from({"u3": 80, "u1": -50, "u2": -30}))

    assert [(s.from_user, s.to_user, s.amount) for s in suggestions] == [
        ("u1", "u3", 50),
        ("u2", "u3", 30),
    ]


def test_balanced_ledger_needs_no_transfers():
    assert SettlementOptimizer.minimize_transactions({}) == []
    assert SettlementOptimizer.minimize_transactions(ledger_from({"u1": 0.004, "u2": -0.004, "u3": 0})) == []


def test_largest_debtor_pays_largest_creditor_first():
    suggestions = SettlementOptimizer.minimize_transactions(
        ledger_from({"a": 10, "b": 70, "c": -60, "d": -20})
    )

    assert [(s.from_user, s.to_user, s.amount) for s in suggestions] == [
        ("c", "b", 60),
        ("d", "b", 10),
        ("d", "a", 10),
    ]


@pytest.mark.parametrize("nets", [
    {"a": 33.34, "b": -16.67, "c": -16.67},
    {"a": 100, "b": 50, "c": -25, "d": -25, "e": -100},
    {"a": 12.5, "b": -7.25, "c": 3.75, "d": -9, "e": 0},
    {"a": 66.666666, "b": -33.333333, "c": -33.333333},
])
def test_suggestions_clear_every_balance(nets):
    suggestions = SettlementOptimizer.minimize_transactions(ledger_from(nets))

    remaining = apply_suggestions(nets, suggestions)
    assert all(abs(balance) <= TOLERANCE for balance in remaining.values())

    non_zero = sum(1 for net in nets.values() if abs(net) > TOLERANCE)
    assert len(suggestions) <= non_zero - 1
    assert all(s.amount > 0 for s in suggestions)


def test_suggestion_amounts_are_rounded():
    suggestions = SettlementOptimizer.minimize_transactions(
        ledger_from({"a": 66.666666, "b": -33.333333, "c": -33.333333})
    )

    assert [s.amount for s in suggestions] == [33.33, 33.33]


def test_suggestions_carry_user_names():
    ledger = ledger_from({"u1": 25, "u2": -25})
    ledger["u1"].user = User(id="u1", name="Alice", email="alice@example.com")

    (suggestion,) = SettlementOptimizer.minimize_transactions(ledger)

    assert suggestion.to_user_name == "Alice"
    assert suggestion.from_user_name == "u2"


def test_optimize_settlements_composes_both(make_expense):
    expense = make_expense(300, "u1", {"u1": 100, "u2": 100, "u3": 100})

    result = SettlementOptimizer.optimize_settlements("g1", [expense])

    assert set(result["balances"]) == {"u1", "u2", "u3"}
    assert [s.amount for s in result["optimal_settlements"]] == [100, 100]
