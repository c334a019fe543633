"""
Test suite for savings products

Tests DPS and FDR opening, maturity dates and closing with the
principal/interest split.
"""

import pytest
from dataclasses import replace
from decimal import Decimal
from datetime import date, datetime, timezone

from microfund.config import MicrofundConfig
from microfund.exceptions import InvalidOperationError, RecordNotFoundError
from microfund.ledger import TransactionType
from microfund.savings import DPS, FDR, SavingsStatus
from microfund.storage import InMemoryStorage
from microfund.system import MicrofinanceSystem


START = datetime(2024, 1, 31, tzinfo=timezone.utc)


class TestMaturity:
    """Test derived maturity dates"""

    def test_dps_maturity(self):
        dps = DPS(
            id="dps_1", client_id="c_1", monthly_amount=Decimal("500"), interest_rate=Decimal("8"),
            term_years=3, start_date=START, status=SavingsStatus.ACTIVE,
            branch_id="br_main", created_by="Administrator"
        )
        assert dps.maturity_date == date(2027, 1, 31)

    def test_fdr_maturity(self):
        fdr = FDR(
            id="fdr_1", client_id="c_1", deposit_amount=Decimal("10000"), interest_rate=Decimal("10"),
            term_months=13, start_date=START, status=SavingsStatus.ACTIVE,
            branch_id="br_main", created_by="Administrator"
        )
        assert fdr.maturity_date == date(2025, 2, 28)


class TestSavingsManager:
    """Test savings manager functionality"""

    def setup_method(self):
        """Set up test fixtures"""
        config = MicrofundConfig(storage_backend="memory")
        self.system = MicrofinanceSystem(storage=InMemoryStorage(), config=config)
        self.savings = self.system.savings
        self.admin = self.system.get_user("u_admin")
        self.client = self.system.clients.register_client(self.admin, "Rahima Begum", "NID-1001")

    def test_open_dps(self):
        dps, transaction = self.savings.open_dps(self.admin, self.client.id, "2000", 5)

        assert dps.status == SavingsStatus.ACTIVE
        assert dps.interest_rate == Decimal("8")
        assert transaction.type == TransactionType.SAVINGS
        assert transaction.amount == Decimal("2000")
        assert transaction.description == "Initial DPS Installment"
        assert transaction.product_id == dps.id

    def test_open_fdr(self):
        fdr, transaction = self.savings.open_fdr(self.admin, self.client.id, "10000", 12, interest_rate="11")

        assert fdr.interest_rate == Decimal("11")
        assert transaction.amount == Decimal("10000")
        assert transaction.description == "FDR Initial Deposit"

        state = self.system.get_fund_state("br_main")
        assert state.total_savings_liability == Decimal("10000")
        assert state.available_cash == Decimal("1010000")

    def test_open_requires_client(self):
        with pytest.raises(RecordNotFoundError):
            self.savings.open_dps(self.admin, "c_missing", "2000", 5)
        with pytest.raises(RecordNotFoundError):
            self.savings.open_fdr(self.admin, "c_missing", "2000", 5)

    def test_close_fdr(self):
        fdr, _ = self.savings.open_fdr(self.admin, self.client.id, "10000", 12)

        closed, transaction = self.savings.close_savings_product(self.admin, "FDR", fdr.id, "10000", "1000")

        assert closed.status == SavingsStatus.CLOSED
        assert self.savings.get_fdr(fdr.id) == closed
        assert transaction.amount == Decimal("11000")
        assert transaction.principal_part == Decimal("10000")
        assert transaction.interest_part == Decimal("1000")
        assert self.system.get_fund_state("br_main").total_savings_liability == Decimal("-1000")

    def test_close_matured_rejected(self):
        dps, _ = self.savings.open_dps(self.admin, self.client.id, "2000", 5)
        self.system.store.replace("dps", replace(dps, status=SavingsStatus.MATURED))

        with pytest.raises(InvalidOperationError, match="only ACTIVE"):
            self.savings.close_savings_product(self.admin, "DPS", dps.id, "2000", "0")

    def test_close_wrong_type(self):
        dps, _ = self.savings.open_dps(self.admin, self.client.id, "2000", 5)

        with pytest.raises(RecordNotFoundError):
            self.savings.close_savings_product(self.admin, "FDR", dps.id, "2000", "0")
        with pytest.raises(InvalidOperationError):
            self.savings.close_savings_product(self.admin, "RD", dps.id, "2000", "0")

    def test_close_negative_interest(self):
        dps, _ = self.savings.open_dps(self.admin, self.client.id, "2000", 5)
        with pytest.raises(InvalidOperationError):
            self.savings.close_savings_product(self.admin, "DPS", dps.id, "2000", "-1")
        assert self.savings.get_dps(dps.id).status == SavingsStatus.ACTIVE

    def test_list_products(self):
        self.savings.open_dps(self.admin, self.client.id, "100", 1)
        self.savings.open_fdr(self.admin, self.client.id, "100", 1)

        assert len(self.savings.list_products("DPS")) == 1
        assert len(self.savings.list_products("FDR", "br_main")) == 1
        assert self.savings.list_products("FDR", "br_other") == []
