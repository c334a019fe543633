"""
Bank Account Module

Tracks the fund's own accounts at outside banks. Moving cash into or out of a
bank account is logged as BANK_DEPOSIT / BANK_WITHDRAWAL and also updates the
account's cached running balance. The balance is the only cached piece of
derived state; `reconcile` checks it against the log.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union
import logging

from .amounts import AmountLike, ZERO
from .exceptions import InvalidOperationError
from .ledger import Transaction, TransactionType
from .logging_config import log_action
from .records import ALL_BRANCHES, Record, RecordStore, new_id
from .transactions import BANK_TRANSACTION_TYPES, TransactionRecorder, parse_transaction_type
from .users import UserAccount, require_actor


logger = logging.getLogger(__name__)


class BankAccountType(Enum):
    """Kinds of outside bank account"""
    SAVINGS = "SAVINGS"
    CURRENT = "CURRENT"
    FIXED = "FIXED"


@dataclass(frozen=True)
class BankAccount(Record):
    """Fund account held at an outside bank"""
    bank_name: str
    account_number: str
    account_type: BankAccountType
    branch_id: str
    balance: Decimal = ZERO


class BankingManager:
    """Bank account creation and bank transactions"""

    def __init__(self, store: RecordStore, recorder: TransactionRecorder):
        self.store = store
        self.recorder = recorder

    def add_bank_account(
        self,
        actor: Optional[UserAccount],
        branch_id: str,
        bank_name: str,
        account_number: str,
        account_type: Union[BankAccountType, str]
    ) -> BankAccount:
        """
        Register a bank account for a branch with a zero balance

        Raises:
            RecordNotFoundError: If the branch does not exist
        """
        actor = require_actor(actor)
        self.store.require("branches", branch_id, "Branch")

        if not bank_name or not bank_name.strip():
            raise InvalidOperationError("Bank name is required")
        if not account_number or not account_number.strip():
            raise InvalidOperationError("Account number is required")
        try:
            account_type = BankAccountType(account_type)
        except ValueError:
            raise InvalidOperationError(f"Unknown bank account type: {account_type}")

        account = BankAccount(
            id=new_id("bnk"),
            bank_name=bank_name.strip(),
            account_number=account_number.strip(),
            account_type=account_type,
            branch_id=branch_id,
            balance=ZERO
        )

        with self.store.atomic():
            self.store.insert("bank_accounts", account)

        log_action(
            logger, "info", "Bank Account Added",
            user_id=actor.id, branch_id=branch_id,
            action="add_bank_account", resource=account.id,
            details={"bank_name": account.bank_name, "account_type": account_type.value}
        )
        return account

    def record_bank_transaction(
        self,
        actor: Optional[UserAccount],
        bank_account_id: str,
        transaction_type: Union[TransactionType, str],
        amount: AmountLike,
        date: Optional[datetime] = None,
        description: str = ""
    ) -> Tuple[Transaction, BankAccount]:
        """
        Move cash between the till and a bank account

        A BANK_DEPOSIT lowers available cash and raises the account balance;
        a BANK_WITHDRAWAL does the opposite. The log entry is booked against
        the actor's branch.

        Returns:
            Tuple of (created Transaction, updated BankAccount)
        """
        actor = require_actor(actor)
        transaction_type = parse_transaction_type(transaction_type)
        if transaction_type not in BANK_TRANSACTION_TYPES:
            raise InvalidOperationError(
                f"{transaction_type.value} is not a bank transaction type"
            )

        account = self.require_bank_account(bank_account_id)

        with self.store.atomic():
            transaction = self.recorder.build_transaction(
                actor, transaction_type, amount, description,
                bank_account_id=account.id,
                date=date
            )
            delta = transaction.amount if transaction_type == TransactionType.BANK_DEPOSIT else -transaction.amount
            updated = replace(account, balance=account.balance + delta)

            self.store.insert("transactions", transaction)
            self.store.replace("bank_accounts", updated)

        log_action(
            logger, "info", "Bank Transaction Recorded",
            user_id=actor.id, branch_id=transaction.branch_id,
            action="record_bank_transaction", resource=account.id,
            details={
                "type": transaction_type.value,
                "amount": str(transaction.amount),
                "balance": str(updated.balance)
            }
        )
        return transaction, updated

    def get_bank_account(self, bank_account_id: str) -> Optional[BankAccount]:
        """Get bank account by ID"""
        return self.store.get("bank_accounts", bank_account_id)

    def require_bank_account(self, bank_account_id: str) -> BankAccount:
        """Get bank account by ID or raise RecordNotFoundError"""
        return self.store.require("bank_accounts", bank_account_id, "Bank account")

    def list_bank_accounts(self, branch_scope: str = ALL_BRANCHES) -> List[BankAccount]:
        """Bank accounts in a scope"""
        if branch_scope == ALL_BRANCHES:
            return list(self.store.bank_accounts)
        return self.store.find("bank_accounts", branch_id=branch_scope)

    def ledger_balance(self, bank_account_id: str) -> Decimal:
        """Balance recomputed from the log: deposits minus withdrawals"""
        balance = ZERO
        for transaction in self.store.transactions:
            if transaction.bank_account_id != bank_account_id:
                continue
            if transaction.type == TransactionType.BANK_DEPOSIT:
                balance += transaction.amount
            elif transaction.type == TransactionType.BANK_WITHDRAWAL:
                balance -= transaction.amount
        return balance

    def reconcile(self) -> Dict[str, Tuple[Decimal, Decimal]]:
        """
        Compare cached balances against the log

        Returns:
            account_id -> (cached balance, log balance) for every mismatch;
            empty when all accounts agree
        """
        mismatches = {}
        for account in self.store.bank_accounts:
            derived = self.ledger_balance(account.id)
            if derived != account.balance:
                mismatches[account.id] = (account.balance, derived)

        if mismatches:
            logger.warning(f"Bank balance mismatch on {len(mismatches)} account(s): {sorted(mismatches)}")
        return mismatches
