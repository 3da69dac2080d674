import pytest
from fastapi.testclient import TestClient

from main import app
from models import Expense, Split, SplitType
from storage import storage


@pytest.fixture(autouse=True)
def clean_storage():
    storage.clear()
    yield
    storage.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_expense():
    """Build an expense with explicit splits, e.g. make_expense(300, "u1", {"u1": 100, ...})"""
    def _make(amount, paid_by, shares, group="g1", is_settled=False):
        return Expense(
            title="Test expense",
            amount=amount,
            paid_by=paid_by,
            group=group,
            split_type=SplitType.CUSTOM,
            splits=[Split(user_id=uid, amount=share) for uid, share in shares.items()],
            is_settled=is_settled,
        )
    return _make
