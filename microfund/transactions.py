"""
Transaction Recording Module

Builds log entries stamped with the acting user's branch and identity, and
records generic cash movements (collections, operating expenses) that are not
tied to opening a product. Product and bank operations reuse
`build_transaction` so every entry in the log is created the same way.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Union
import logging

from .amounts import AmountLike, ZERO, non_negative_amount
from .exceptions import InsufficientFundsError, InvalidOperationError
from .ledger import CASH_EFFECTS, Transaction, TransactionType, compute_fund_state, in_scope
from .logging_config import log_action
from .records import ALL_BRANCHES, RecordStore, as_utc, new_id
from .users import UserAccount, require_actor


logger = logging.getLogger(__name__)


BANK_TRANSACTION_TYPES = frozenset({
    TransactionType.BANK_DEPOSIT,
    TransactionType.BANK_WITHDRAWAL,
})


def parse_transaction_type(value: Union[TransactionType, str]) -> TransactionType:
    """Accept an enum member or its string value"""
    try:
        return TransactionType(value)
    except ValueError:
        raise InvalidOperationError(f"Unknown transaction type: {value}")


class TransactionRecorder:
    """Creates log entries and records generic transactions"""

    def __init__(self, store: RecordStore, enforce_cash_sufficiency: bool = False):
        self.store = store
        self.enforce_cash_sufficiency = enforce_cash_sufficiency

    def build_transaction(
        self,
        actor: Optional[UserAccount],
        transaction_type: Union[TransactionType, str],
        amount: AmountLike,
        description: str,
        client_id: Optional[str] = None,
        product_id: Optional[str] = None,
        bank_account_id: Optional[str] = None,
        interest_part: AmountLike = ZERO,
        principal_part: AmountLike = ZERO,
        date: Optional[datetime] = None
    ) -> Transaction:
        """
        Build (but do not insert) a transaction for the actor's branch

        Raises:
            NotAuthenticatedError: If there is no branch-bound actor
            InvalidOperationError: If the type or amounts are invalid
            InsufficientFundsError: If the cash guard is enabled and the
                outflow would overdraw the actor's branch
        """
        actor = require_actor(actor)
        transaction_type = parse_transaction_type(transaction_type)
        amount = non_negative_amount(amount, "amount")

        if self.enforce_cash_sufficiency and CASH_EFFECTS[transaction_type][0] < 0:
            self._check_cash_available(actor.branch_id, amount)

        return Transaction(
            id=new_id("tx"),
            date=as_utc(date) if date else datetime.now(timezone.utc),
            type=transaction_type,
            amount=amount,
            description=description or "",
            performed_by=actor.name,
            branch_id=actor.branch_id,
            interest_part=non_negative_amount(interest_part, "interest part"),
            principal_part=non_negative_amount(principal_part, "principal part"),
            client_id=client_id,
            product_id=product_id,
            bank_account_id=bank_account_id
        )

    def record_transaction(
        self,
        actor: Optional[UserAccount],
        transaction_type: Union[TransactionType, str],
        amount: AmountLike,
        description: str,
        client_id: Optional[str] = None,
        product_id: Optional[str] = None,
        interest_part: AmountLike = ZERO,
        principal_part: AmountLike = ZERO
    ) -> Transaction:
        """
        Record a generic transaction such as a COLLECTION or OPEX

        Bank movements must go through the bank account so its cached
        balance stays in step with the log.
        """
        actor = require_actor(actor)
        transaction_type = parse_transaction_type(transaction_type)
        if transaction_type in BANK_TRANSACTION_TYPES:
            raise InvalidOperationError(
                "Bank transactions must be recorded against a bank account"
            )

        with self.store.atomic():
            transaction = self.build_transaction(
                actor, transaction_type, amount, description,
                client_id=client_id,
                product_id=product_id,
                interest_part=interest_part,
                principal_part=principal_part
            )
            self.store.insert("transactions", transaction)

        log_action(
            logger, "info", "Transaction recorded",
            user_id=actor.id, branch_id=transaction.branch_id,
            action="record_transaction", resource=transaction.id,
            details={"type": transaction.type.value, "amount": str(transaction.amount)}
        )
        return transaction

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction by ID"""
        return self.store.get("transactions", transaction_id)

    def get_transactions(
        self,
        branch_scope: str = ALL_BRANCHES,
        transaction_type: Optional[TransactionType] = None,
        product_id: Optional[str] = None
    ) -> List[Transaction]:
        """Transactions in a scope, newest first"""
        result = [
            transaction for transaction in self.store.transactions
            if in_scope(transaction, branch_scope)
            and (transaction_type is None or transaction.type == transaction_type)
            and (product_id is None or transaction.product_id == product_id)
        ]
        result.sort(key=lambda t: t.date, reverse=True)
        return result

    def _check_cash_available(self, branch_id: str, amount: Decimal) -> None:
        state = compute_fund_state(branch_id, self.store.transactions, self.store.loans, self.store.branches)
        if state.available_cash - amount < ZERO:
            raise InsufficientFundsError(
                f"Branch {branch_id} has {state.available_cash} available, cannot pay out {amount}"
            )
