"""
Test suite for loans module

Tests loan disbursement, rate defaults, linkage between the loan and its
DISBURSEMENT transaction, and maturity dates.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from microfund.config import MicrofundConfig
from microfund.exceptions import InvalidOperationError, NotAuthenticatedError, RecordNotFoundError
from microfund.ledger import TransactionType
from microfund.loans import InterestMethod, Loan
from microfund.storage import InMemoryStorage
from microfund.system import MicrofinanceSystem


class TestLoanRecord:
    """Test the Loan record itself"""

    def make_loan(self, **overrides):
        fields = dict(
            id="l_1",
            client_id="c_1",
            principal=Decimal("12000"),
            interest_rate=Decimal("12"),
            term_months=12,
            method=InterestMethod.REDUCING,
            start_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
            disbursed=True,
            remaining_principal=Decimal("12000"),
            branch_id="br_main",
            created_by="Administrator"
        )
        fields.update(overrides)
        return Loan(**fields)

    def test_maturity_date(self):
        assert self.make_loan().maturity_date == date(2025, 1, 31)

    def test_maturity_date_month_end(self):
        assert self.make_loan(term_months=1).maturity_date == date(2024, 2, 29)

    def test_principal_must_be_positive(self):
        with pytest.raises(InvalidOperationError):
            self.make_loan(principal=Decimal("0"))


class TestLoanManager:
    """Test loan manager functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        config = MicrofundConfig(storage_backend="memory")
        self.system = MicrofinanceSystem(storage=InMemoryStorage(), config=config)
        self.loans = self.system.loans
        self.admin = self.system.get_user("u_admin")
        self.client = self.system.clients.register_client(self.admin, "Rahima Begum", "NID-1001")

    def test_disburse_loan(self):
        loan, transaction = self.loans.disburse_loan(self.admin, self.client.id, "50000", 12)

        assert loan.id.startswith("l_")
        assert loan.disbursed
        assert loan.principal == Decimal("50000")
        assert loan.remaining_principal == Decimal("50000")
        assert loan.method == InterestMethod.FLAT
        assert loan.branch_id == "br_main"
        assert loan.created_by == "Administrator"

        assert transaction.type == TransactionType.DISBURSEMENT
        assert transaction.amount == Decimal("50000")
        assert transaction.product_id == loan.id
        assert transaction.client_id == self.client.id
        assert transaction.description == "Loan Disbursement"

    def test_default_rate_from_branch(self):
        loan, _ = self.loans.disburse_loan(self.admin, self.client.id, "1000", 6)
        assert loan.interest_rate == Decimal("12")

    def test_explicit_rate_and_method(self):
        loan, _ = self.loans.disburse_loan(
            self.admin, self.client.id, "1000", 6, method="REDUCING", interest_rate="18.5"
        )
        assert loan.interest_rate == Decimal("18.5")
        assert loan.method == InterestMethod.REDUCING

    def test_unknown_method(self):
        with pytest.raises(InvalidOperationError):
            self.loans.disburse_loan(self.admin, self.client.id, "1000", 6, method="BALLOON")

    def test_zero_principal(self):
        with pytest.raises(InvalidOperationError):
            self.loans.disburse_loan(self.admin, self.client.id, "0", 6)
        assert self.system.store.loans == []

    def test_invalid_term(self):
        with pytest.raises(InvalidOperationError):
            self.loans.disburse_loan(self.admin, self.client.id, "1000", 0)

    def test_missing_client(self):
        with pytest.raises(RecordNotFoundError):
            self.loans.disburse_loan(self.admin, "c_missing", "1000", 6)

    def test_requires_actor(self):
        with pytest.raises(NotAuthenticatedError):
            self.loans.disburse_loan(None, self.client.id, "1000", 6)
        assert self.system.store.transactions == []

    def test_client_loans(self):
        first, _ = self.loans.disburse_loan(self.admin, self.client.id, "1000", 6)
        second, _ = self.loans.disburse_loan(self.admin, self.client.id, "2000", 6)

        assert [loan.id for loan in self.loans.get_client_loans(self.client.id)] == [first.id, second.id]
        assert self.loans.get_loan(first.id) == first
