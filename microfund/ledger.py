"""
Ledger Engine

Folds the append-only transaction log and the loan book into a FundState
snapshot for one branch or for the consolidated "ALL" scope. The fold is a
pure function: no storage access, no mutation, no exceptions for any input.
Fund positions are never stored; they are derived from the log on every
query (memoized only against the store version).
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple
from enum import Enum

from .amounts import ZERO, non_negative_amount
from .records import ALL_BRANCHES, Record, RecordStore, VersionedCache

if TYPE_CHECKING:
    from .branches import Branch
    from .loans import Loan


class TransactionType(Enum):
    """Kinds of cash movement recorded in the log"""
    DISBURSEMENT = "DISBURSEMENT"        # Loan paid out
    COLLECTION = "COLLECTION"            # Loan repayment received
    SAVINGS = "SAVINGS"                  # Deposit into a savings product
    WITHDRAWAL = "WITHDRAWAL"            # Savings paid back to a client
    OPEX = "OPEX"                        # Operating expense
    BANK_DEPOSIT = "BANK_DEPOSIT"        # Cash moved into a bank account
    BANK_WITHDRAWAL = "BANK_WITHDRAWAL"  # Cash drawn from a bank account


# (cash sign, savings liability sign) per transaction type
CASH_EFFECTS: Dict[TransactionType, Tuple[int, int]] = {
    TransactionType.DISBURSEMENT: (-1, 0),
    TransactionType.COLLECTION: (1, 0),
    TransactionType.SAVINGS: (1, 1),
    TransactionType.WITHDRAWAL: (-1, -1),
    TransactionType.OPEX: (-1, 0),
    TransactionType.BANK_DEPOSIT: (-1, 0),
    TransactionType.BANK_WITHDRAWAL: (1, 0),
}


@dataclass(frozen=True)
class Transaction(Record):
    """
    Single immutable entry of the cash log.

    interest_part and principal_part are only filled in by savings closures.
    """
    date: datetime
    type: TransactionType
    amount: Decimal
    description: str
    performed_by: str
    branch_id: str
    interest_part: Decimal = ZERO
    principal_part: Decimal = ZERO
    client_id: Optional[str] = None
    product_id: Optional[str] = None
    bank_account_id: Optional[str] = None

    def __post_init__(self):
        non_negative_amount(self.amount, "transaction amount")

    @property
    def cash_effect(self) -> Decimal:
        """Signed change in available cash"""
        return self.amount * CASH_EFFECTS[self.type][0]

    @property
    def savings_effect(self) -> Decimal:
        """Signed change in savings liability"""
        return self.amount * CASH_EFFECTS[self.type][1]


@dataclass(frozen=True)
class FundState:
    """Derived financial position of a scope"""
    total_capital: Decimal = field(default=ZERO)
    available_cash: Decimal = field(default=ZERO)
    total_loans_out: Decimal = field(default=ZERO)
    total_savings_liability: Decimal = field(default=ZERO)

    def __add__(self, other: 'FundState') -> 'FundState':
        if not isinstance(other, FundState):
            return NotImplemented
        return FundState(
            total_capital=self.total_capital + other.total_capital,
            available_cash=self.available_cash + other.available_cash,
            total_loans_out=self.total_loans_out + other.total_loans_out,
            total_savings_liability=self.total_savings_liability + other.total_savings_liability
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_capital": str(self.total_capital),
            "available_cash": str(self.available_cash),
            "total_loans_out": str(self.total_loans_out),
            "total_savings_liability": str(self.total_savings_liability),
        }


def in_scope(record: object, branch_scope: str) -> bool:
    """Check if a branch-bound record belongs to the scope"""
    return branch_scope == ALL_BRANCHES or getattr(record, "branch_id", None) == branch_scope


def compute_fund_state(
    branch_scope: str,
    transactions: Iterable[Transaction],
    loans: Iterable['Loan'],
    branches: Iterable['Branch']
) -> FundState:
    """
    Derive the FundState of a scope.

    Inputs may be the full record sets or already narrowed to the scope;
    out-of-scope records are skipped either way. Capital of an unknown branch
    is zero. Savings liability comes from the log alone, so a DPS or FDR
    without a matching SAVINGS transaction contributes nothing.
    """
    capital = sum(
        (branch.initial_capital for branch in branches
         if branch_scope == ALL_BRANCHES or branch.id == branch_scope),
        ZERO
    )

    cash = capital
    savings = ZERO
    for transaction in transactions:
        if not in_scope(transaction, branch_scope):
            continue
        cash += transaction.cash_effect
        savings += transaction.savings_effect

    loans_out = sum(
        (loan.remaining_principal for loan in loans
         if in_scope(loan, branch_scope) and getattr(loan, "disbursed", False)),
        ZERO
    )

    return FundState(
        total_capital=capital,
        available_cash=cash,
        total_loans_out=loans_out,
        total_savings_liability=savings
    )


class FundStateCache:
    """FundState per scope, recomputed only when the store version changes"""

    def __init__(self):
        self._cache = VersionedCache()

    def get(self, store: RecordStore, branch_scope: str) -> FundState:
        return self._cache.get(
            store, branch_scope,
            lambda: compute_fund_state(branch_scope, store.transactions, store.loans, store.branches)
        )

    @property
    def hits(self) -> int:
        return self._cache.hits

    @property
    def misses(self) -> int:
        return self._cache.misses
