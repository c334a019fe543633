"""
Test suite for the ledger engine

Tests the FundState fold: cash and savings sign rules, loans outstanding,
scope filtering, additivity of the consolidated view, and the version-keyed
cache. All amounts are Decimal and results must be exact.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timedelta, timezone

from microfund.branches import Branch
from microfund.exceptions import InvalidOperationError
from microfund.ledger import (
    FundState, FundStateCache, Transaction, TransactionType, compute_fund_state
)
from microfund.loans import InterestMethod, Loan
from microfund.records import ALL_BRANCHES, RecordStore


START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def branch(branch_id, capital):
    return Branch(
        id=branch_id,
        name=branch_id,
        address="",
        initial_capital=Decimal(capital),
        default_loan_rate=Decimal("12"),
        default_dps_rate=Decimal("8"),
        default_fdr_rate=Decimal("10")
    )


def tx(tx_id, transaction_type, amount, branch_id, minutes=0):
    return Transaction(
        id=tx_id,
        date=START + timedelta(minutes=minutes),
        type=transaction_type,
        amount=Decimal(amount),
        description="",
        performed_by="tester",
        branch_id=branch_id
    )


def loan(loan_id, remaining, branch_id, disbursed=True):
    return Loan(
        id=loan_id,
        client_id="c_1",
        principal=Decimal(remaining),
        interest_rate=Decimal("12"),
        term_months=12,
        method=InterestMethod.FLAT,
        start_date=START,
        disbursed=disbursed,
        remaining_principal=Decimal(remaining),
        branch_id=branch_id,
        created_by="tester"
    )


BRANCHES = [branch("br_a", "1000000"), branch("br_b", "250000")]

TRANSACTIONS = [
    tx("t1", TransactionType.DISBURSEMENT, "50000", "br_a", 1),
    tx("t2", TransactionType.COLLECTION, "10000", "br_a", 2),
    tx("t3", TransactionType.SAVINGS, "2000", "br_a", 3),
    tx("t4", TransactionType.WITHDRAWAL, "500", "br_a", 4),
    tx("t5", TransactionType.OPEX, "300", "br_a", 5),
    tx("t6", TransactionType.BANK_DEPOSIT, "7000", "br_a", 6),
    tx("t7", TransactionType.BANK_WITHDRAWAL, "1500", "br_a", 7),
    tx("t8", TransactionType.DISBURSEMENT, "20000", "br_b", 8),
    tx("t9", TransactionType.SAVINGS, "400.25", "br_b", 9),
]

LOANS = [
    loan("l1", "50000", "br_a"),
    loan("l2", "20000", "br_b"),
    loan("l3", "99999", "br_b", disbursed=False),
]


class TestSignRules:
    """Test each transaction type's effect on cash and savings liability"""

    @pytest.mark.parametrize("transaction_type,cash,savings", [
        (TransactionType.DISBURSEMENT, "-100", "0"),
        (TransactionType.COLLECTION, "100", "0"),
        (TransactionType.SAVINGS, "100", "100"),
        (TransactionType.WITHDRAWAL, "-100", "-100"),
        (TransactionType.OPEX, "-100", "0"),
        (TransactionType.BANK_DEPOSIT, "-100", "0"),
        (TransactionType.BANK_WITHDRAWAL, "100", "0"),
    ])
    def test_single_transaction(self, transaction_type, cash, savings):
        state = compute_fund_state(
            "br_a", [tx("t", transaction_type, "100", "br_a")], [], [branch("br_a", "0")]
        )
        assert state.available_cash == Decimal(cash)
        assert state.total_savings_liability == Decimal(savings)

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidOperationError):
            tx("t", TransactionType.OPEX, "-1", "br_a")


class TestComputeFundState:
    """Test the full fold over a mixed log"""

    def test_branch_a(self):
        state = compute_fund_state("br_a", TRANSACTIONS, LOANS, BRANCHES)

        assert state.total_capital == Decimal("1000000")
        # 1,000,000 - 50,000 + 10,000 + 2,000 - 500 - 300 - 7,000 + 1,500
        assert state.available_cash == Decimal("955700")
        assert state.total_loans_out == Decimal("50000")
        assert state.total_savings_liability == Decimal("1500")

    def test_branch_b_skips_undisbursed_loans(self):
        state = compute_fund_state("br_b", TRANSACTIONS, LOANS, BRANCHES)

        assert state.available_cash == Decimal("230400.25")
        assert state.total_loans_out == Decimal("20000")
        assert state.total_savings_liability == Decimal("400.25")

    def test_all_is_sum_of_branches(self):
        consolidated = compute_fund_state(ALL_BRANCHES, TRANSACTIONS, LOANS, BRANCHES)
        by_branch = (
            compute_fund_state("br_a", TRANSACTIONS, LOANS, BRANCHES)
            + compute_fund_state("br_b", TRANSACTIONS, LOANS, BRANCHES)
        )
        assert consolidated == by_branch

    def test_order_independent(self):
        forward = compute_fund_state(ALL_BRANCHES, TRANSACTIONS, LOANS, BRANCHES)
        backward = compute_fund_state(
            ALL_BRANCHES, list(reversed(TRANSACTIONS)), list(reversed(LOANS)), list(reversed(BRANCHES))
        )
        assert forward == backward

    def test_prefiltered_inputs_give_same_result(self):
        transactions = [t for t in TRANSACTIONS if t.branch_id == "br_b"]
        loans = [item for item in LOANS if item.branch_id == "br_b"]

        assert compute_fund_state("br_b", transactions, loans, BRANCHES) == \
            compute_fund_state("br_b", TRANSACTIONS, LOANS, BRANCHES)

    def test_unknown_branch_is_zero(self):
        state = compute_fund_state("br_unknown", TRANSACTIONS, LOANS, BRANCHES)
        assert state == FundState()

    def test_empty_inputs(self):
        assert compute_fund_state(ALL_BRANCHES, [], [], []) == FundState()

    def test_negative_capital_allowed(self):
        state = compute_fund_state("br_neg", [], [], [branch("br_neg", "-500")])
        assert state.total_capital == Decimal("-500")
        assert state.available_cash == Decimal("-500")

    def test_to_dict_uses_strings(self):
        state = compute_fund_state("br_b", TRANSACTIONS, LOANS, BRANCHES)
        assert state.to_dict()["available_cash"] == "230400.25"


class TestFundStateCache:
    """Test memoization keyed on store version and scope"""

    def setup_method(self):
        self.store = RecordStore(branches=list(BRANCHES), transactions=TRANSACTIONS[:2], loans=LOANS[:1])
        self.cache = FundStateCache()

    def test_repeated_queries_hit(self):
        first = self.cache.get(self.store, "br_a")
        second = self.cache.get(self.store, "br_a")

        assert first is second
        assert self.cache.misses == 1
        assert self.cache.hits == 1

    def test_scopes_cached_separately(self):
        self.cache.get(self.store, "br_a")
        self.cache.get(self.store, ALL_BRANCHES)
        assert self.cache.misses == 2

    def test_mutation_invalidates(self):
        before = self.cache.get(self.store, "br_a")

        with self.store.atomic():
            self.store.insert("transactions", tx("t_new", TransactionType.OPEX, "100", "br_a"))

        after = self.cache.get(self.store, "br_a")
        assert after.available_cash == before.available_cash - Decimal("100")
        assert self.cache.misses == 2
