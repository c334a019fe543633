"""
Test suite for the application context

End-to-end bookkeeping scenarios through MicrofinanceSystem: disbursement,
collection, savings open/close, branch-scoped access, atomicity of failed
commands and persistence after every mutation.
"""

import pytest
from decimal import Decimal

from microfund.config import MicrofundConfig
from microfund.exceptions import (
    AuthorizationError, InvalidOperationError, NotAuthenticatedError, RecordNotFoundError
)
from microfund.ledger import TransactionType
from microfund.records import ALL_BRANCHES
from microfund.savings import SavingsStatus
from microfund.storage import InMemoryStorage
from microfund.system import CommandResult, MicrofinanceSystem


def make_system(storage=None, **overrides):
    config = MicrofundConfig(storage_backend="memory", **overrides)
    return MicrofinanceSystem(storage=storage or InMemoryStorage(), config=config)


class FailingStorage(InMemoryStorage):
    """Backend whose writes fail"""

    def write(self, key, payload):
        raise OSError("disk full")


class TestScenarios:
    """Core bookkeeping scenarios on the seeded head office"""

    def setup_method(self):
        self.system = make_system()
        self.admin = self.system.get_user("u_admin")
        self.client = self.system.register_client(self.admin, "Rahima Begum", "NID-1001").records["client"]

    def test_seed_position(self):
        state = self.system.get_fund_state("br_main")
        assert state.total_capital == Decimal("1000000")
        assert state.available_cash == Decimal("1000000")

    def test_disbursement(self):
        """Disbursing 50,000 moves it from cash to loans outstanding"""
        result = self.system.disburse_loan(self.admin, self.client.id, "50000", 12)

        assert result.message == "Loan disbursed"
        assert set(result.ids) == {"loan_id", "transaction_id"}

        state = self.system.get_fund_state("br_main")
        assert state.available_cash == Decimal("950000")
        assert state.total_loans_out == Decimal("50000")

    def test_collection_does_not_reduce_loans_out(self):
        self.system.disburse_loan(self.admin, self.client.id, "50000", 12)
        result = self.system.record_transaction(
            self.admin, "COLLECTION", "10000", "Installment", client_id=self.client.id
        )

        assert result.message == "Transaction recorded"
        state = self.system.get_fund_state("br_main")
        assert state.available_cash == Decimal("960000")
        assert state.total_loans_out == Decimal("50000")

    def test_dps_open_and_close(self):
        """Closing pays principal plus interest; the whole withdrawal leaves the liability"""
        dps = self.system.open_dps(self.admin, self.client.id, "2000", 5).records["dps"]
        assert self.system.get_fund_state("br_main").total_savings_liability == Decimal("2000")

        result = self.system.close_savings_product(self.admin, "DPS", dps.id, "2000", "160")

        assert result.message == "DPS Closed Successfully"
        withdrawal = result.records["transaction"]
        assert withdrawal.type == TransactionType.WITHDRAWAL
        assert withdrawal.amount == Decimal("2160")
        assert withdrawal.principal_part == Decimal("2000")
        assert withdrawal.interest_part == Decimal("160")
        assert withdrawal.client_id == self.client.id
        assert withdrawal.product_id == dps.id
        assert withdrawal.description == "Closing DPS Product"
        assert self.system.savings.get_dps(dps.id).status == SavingsStatus.CLOSED

        state = self.system.get_fund_state("br_main")
        assert state.total_savings_liability == Decimal("-160")
        assert state.available_cash == Decimal("999840")

    def test_closing_twice_fails(self):
        fdr = self.system.open_fdr(self.admin, self.client.id, "10000", 12).records["fdr"]
        self.system.close_savings_product(self.admin, "FDR", fdr.id, "10000", "0")
        count = len(self.system.store.transactions)

        with pytest.raises(InvalidOperationError):
            self.system.close_savings_product(self.admin, "FDR", fdr.id, "10000", "0")
        assert len(self.system.store.transactions) == count


class TestBranchScope:
    """Branch isolation and the admin/manager access policy"""

    def setup_method(self):
        self.system = make_system()
        self.admin = self.system.get_user("u_admin")
        self.branch = self.system.create_branch(
            self.admin, "North Branch", "Rajshahi", "500000", "14", "7", "9"
        ).records["branch"]
        self.manager = self.system.create_user(
            self.admin, "north", "secret", "North Manager", "MANAGER", self.branch.id
        ).records["user"]

        client = self.system.register_client(self.manager, "Karim", "NID-2002").records["client"]
        self.system.disburse_loan(self.manager, client.id, "30000", 6)

    def test_manager_operations_booked_to_home_branch(self):
        north = self.system.get_fund_state(self.branch.id)
        main = self.system.get_fund_state("br_main")

        assert north.available_cash == Decimal("470000")
        assert north.total_loans_out == Decimal("30000")
        assert main.available_cash == Decimal("1000000")
        assert main.total_loans_out == Decimal("0")

    def test_branch_default_rate_applies(self):
        loan = self.system.loans.list_loans(self.branch.id)[0]
        assert loan.interest_rate == Decimal("14")

    def test_manager_asking_for_all_is_narrowed(self):
        narrowed = self.system.get_fund_state(ALL_BRANCHES, actor=self.manager)
        assert narrowed == self.system.get_fund_state(self.branch.id)

        view = self.system.get_scoped_records(ALL_BRANCHES, actor=self.manager)
        assert view.branch_id == self.branch.id
        assert all(c.branch_id == self.branch.id for c in view.clients)

    def test_admin_sees_consolidated(self):
        consolidated = self.system.get_fund_state(ALL_BRANCHES, actor=self.admin)
        assert consolidated == (
            self.system.get_fund_state("br_main") + self.system.get_fund_state(self.branch.id)
        )
        assert consolidated.total_capital == Decimal("1500000")

    def test_manager_cannot_create_branch(self):
        with pytest.raises(AuthorizationError):
            self.system.create_branch(self.manager, "Rogue", "", "1", "1", "1", "1")

    def test_select_branch(self):
        admin_session = self.system.login("admin", "admin")
        manager_session = self.system.login("north", "secret")

        assert admin_session.branch_filter == ALL_BRANCHES
        assert manager_session.branch_filter == self.branch.id

        assert self.system.select_branch(admin_session, self.branch.id) == self.branch.id
        assert self.system.select_branch(manager_session, "br_main") == self.branch.id

        with pytest.raises(RecordNotFoundError):
            self.system.select_branch(admin_session, "br_nowhere")


class TestCommandGuards:
    """Failed commands leave the store untouched"""

    def setup_method(self):
        self.system = make_system()
        self.admin = self.system.get_user("u_admin")

    def test_no_actor(self):
        before = self.system.store.counts()

        with pytest.raises(NotAuthenticatedError):
            self.system.register_client(None, "Nobody", "NID-0")
        with pytest.raises(NotAuthenticatedError):
            self.system.record_transaction(None, "OPEX", "10", "Tea")

        assert self.system.store.counts() == before
        assert self.system.store.version == 0

    def test_missing_client(self):
        with pytest.raises(RecordNotFoundError):
            self.system.disburse_loan(self.admin, "c_missing", "100", 3)
        assert self.system.store.loans == []
        assert self.system.store.transactions == []

    def test_cash_guard(self):
        system = make_system(enforce_cash_sufficiency=True)
        admin = system.get_user("u_admin")

        system.record_transaction(admin, "OPEX", "1000000", "Everything")
        with pytest.raises(InvalidOperationError):
            system.record_transaction(admin, "OPEX", "0.01", "One cent too many")
        assert system.get_fund_state("br_main").available_cash == Decimal("0")


class TestPersistence:
    """Snapshot written after every mutation"""

    def test_state_survives_restart(self):
        storage = InMemoryStorage()
        system = make_system(storage)
        admin = system.get_user("u_admin")
        client = system.register_client(admin, "Rahima", "NID-1").records["client"]
        system.disburse_loan(admin, client.id, "50000", 12)

        restarted = make_system(storage)

        assert restarted.store == system.store
        assert restarted.get_fund_state(ALL_BRANCHES) == system.get_fund_state(ALL_BRANCHES)

    def test_persist_failure_keeps_mutation(self):
        system = make_system(FailingStorage())
        admin = system.get_user("u_admin")

        result = system.register_client(admin, "Rahima", "NID-1")

        assert isinstance(result, CommandResult)
        assert result.persisted is False
        assert system.clients.get_client(result.ids["client_id"]) is not None
