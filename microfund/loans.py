"""
Loan Module

Loan disbursement. Creating a loan and paying it out are one step: the loan is
stored already disbursed with its full principal outstanding, and a
DISBURSEMENT entry linked to the loan and client is appended to the log.

Collections are recorded as generic COLLECTION transactions and do not reduce
remaining_principal. The interest method is kept on the record but does not
change how the loan book is accounted.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union
import logging

from .amounts import AmountLike, add_months, positive_amount, positive_term
from .branches import BranchManager
from .exceptions import InvalidOperationError
from .ledger import Transaction, TransactionType
from .logging_config import log_action
from .records import ALL_BRANCHES, Record, RecordStore, new_id
from .transactions import TransactionRecorder
from .users import UserAccount, require_actor


logger = logging.getLogger(__name__)


class InterestMethod(Enum):
    """How interest is charged on a loan"""
    FLAT = "FLAT"            # Interest on original principal
    REDUCING = "REDUCING"    # Interest on declining balance


@dataclass(frozen=True)
class Loan(Record):
    """Loan issued to a client"""
    client_id: str
    principal: Decimal
    interest_rate: Decimal
    term_months: int
    method: InterestMethod
    start_date: datetime
    disbursed: bool
    remaining_principal: Decimal
    branch_id: str
    created_by: str

    def __post_init__(self):
        positive_amount(self.principal, "principal")

    @property
    def maturity_date(self) -> date:
        """Date the final installment falls due"""
        return add_months(self.start_date, self.term_months)


class LoanManager:
    """Loan disbursement and lookups"""

    def __init__(self, store: RecordStore, recorder: TransactionRecorder, branches: BranchManager):
        self.store = store
        self.recorder = recorder
        self.branches = branches

    def disburse_loan(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        principal: AmountLike,
        term_months: int,
        method: Union[InterestMethod, str] = InterestMethod.FLAT,
        interest_rate: Optional[AmountLike] = None
    ) -> Tuple[Loan, Transaction]:
        """
        Create a loan and pay it out

        Args:
            actor: Authenticated user; the loan is booked to their branch
            client_id: Borrower
            principal: Amount paid out, must be positive
            term_months: Loan term
            method: FLAT or REDUCING
            interest_rate: Annual rate in percent; defaults to the branch's
                loan rate

        Returns:
            Tuple of (Loan, DISBURSEMENT Transaction)
        """
        actor = require_actor(actor)
        client = self.store.require("clients", client_id, "Client")
        principal = positive_amount(principal, "principal")
        term_months = positive_term(term_months, "term_months")
        try:
            method = InterestMethod(method)
        except ValueError:
            raise InvalidOperationError(f"Unknown interest method: {method}")
        rate = self.branches.resolve_rate(actor.branch_id, "loan", interest_rate)

        now = datetime.now(timezone.utc)
        loan = Loan(
            id=new_id("l"),
            client_id=client.id,
            principal=principal,
            interest_rate=rate,
            term_months=term_months,
            method=method,
            start_date=now,
            disbursed=True,
            remaining_principal=principal,
            branch_id=actor.branch_id,
            created_by=actor.name
        )

        with self.store.atomic():
            transaction = self.recorder.build_transaction(
                actor, TransactionType.DISBURSEMENT, principal, "Loan Disbursement",
                client_id=client.id,
                product_id=loan.id,
                date=now
            )
            self.store.insert("loans", loan)
            self.store.insert("transactions", transaction)

        log_action(
            logger, "info", "Loan disbursed",
            user_id=actor.id, branch_id=loan.branch_id,
            action="disburse_loan", resource=loan.id,
            details={"client_id": client.id, "principal": str(principal), "method": method.value}
        )
        return loan, transaction

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        return self.store.get("loans", loan_id)

    def get_client_loans(self, client_id: str) -> List[Loan]:
        """All loans for a client"""
        return self.store.find("loans", client_id=client_id)

    def list_loans(self, branch_scope: str = ALL_BRANCHES) -> List[Loan]:
        """Loans in a scope"""
        if branch_scope == ALL_BRANCHES:
            return list(self.store.loans)
        return self.store.find("loans", branch_id=branch_scope)
