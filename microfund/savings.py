"""
Savings Products Module

DPS (monthly deposit scheme) and FDR (fixed deposit) accounts. Opening either
product books the first deposit as a SAVINGS transaction; closing one pays
the client back through a single WITHDRAWAL that records the principal and
interest split.

Savings liability is derived from the log only. The product records carry
status and terms, not balances.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union
import logging

from .amounts import AmountLike, add_months, non_negative_amount, positive_amount, positive_term
from .branches import BranchManager
from .exceptions import InvalidOperationError
from .ledger import Transaction, TransactionType
from .logging_config import log_action
from .records import ALL_BRANCHES, Record, RecordStore, new_id
from .transactions import TransactionRecorder
from .users import UserAccount, require_actor


logger = logging.getLogger(__name__)


class SavingsStatus(Enum):
    """Savings product lifecycle"""
    ACTIVE = "ACTIVE"
    MATURED = "MATURED"
    CLOSED = "CLOSED"


class SavingsProductType(Enum):
    """Savings product kinds"""
    DPS = "DPS"
    FDR = "FDR"

    @property
    def collection(self) -> str:
        return self.value.lower()


@dataclass(frozen=True)
class DPS(Record):
    """Deposit pension scheme paid in monthly installments"""
    client_id: str
    monthly_amount: Decimal
    interest_rate: Decimal
    term_years: int
    start_date: datetime
    status: SavingsStatus
    branch_id: str
    created_by: str

    @property
    def maturity_date(self) -> date:
        return add_months(self.start_date, self.term_years * 12)


@dataclass(frozen=True)
class FDR(Record):
    """Fixed deposit held for a term"""
    client_id: str
    deposit_amount: Decimal
    interest_rate: Decimal
    term_months: int
    start_date: datetime
    status: SavingsStatus
    branch_id: str
    created_by: str

    @property
    def maturity_date(self) -> date:
        return add_months(self.start_date, self.term_months)


SavingsProduct = Union[DPS, FDR]


class SavingsManager:
    """Opening and closing of DPS and FDR accounts"""

    def __init__(self, store: RecordStore, recorder: TransactionRecorder, branches: BranchManager):
        self.store = store
        self.recorder = recorder
        self.branches = branches

    def open_dps(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        monthly_amount: AmountLike,
        term_years: int,
        interest_rate: Optional[AmountLike] = None
    ) -> Tuple[DPS, Transaction]:
        """
        Open a DPS and book the first installment

        Returns:
            Tuple of (DPS, SAVINGS Transaction)
        """
        actor = require_actor(actor)
        client = self.store.require("clients", client_id, "Client")
        monthly_amount = positive_amount(monthly_amount, "monthly amount")
        term_years = positive_term(term_years, "term_years")
        rate = self.branches.resolve_rate(actor.branch_id, "dps", interest_rate)

        now = datetime.now(timezone.utc)
        dps = DPS(
            id=new_id("dps"),
            client_id=client.id,
            monthly_amount=monthly_amount,
            interest_rate=rate,
            term_years=term_years,
            start_date=now,
            status=SavingsStatus.ACTIVE,
            branch_id=actor.branch_id,
            created_by=actor.name
        )

        with self.store.atomic():
            transaction = self.recorder.build_transaction(
                actor, TransactionType.SAVINGS, monthly_amount, "Initial DPS Installment",
                client_id=client.id,
                product_id=dps.id,
                date=now
            )
            self.store.insert("dps", dps)
            self.store.insert("transactions", transaction)

        log_action(
            logger, "info", "DPS opened",
            user_id=actor.id, branch_id=dps.branch_id,
            action="open_dps", resource=dps.id,
            details={"client_id": client.id, "monthly_amount": str(monthly_amount)}
        )
        return dps, transaction

    def open_fdr(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        deposit_amount: AmountLike,
        term_months: int,
        interest_rate: Optional[AmountLike] = None
    ) -> Tuple[FDR, Transaction]:
        """
        Open an FDR and book the deposit

        Returns:
            Tuple of (FDR, SAVINGS Transaction)
        """
        actor = require_actor(actor)
        client = self.store.require("clients", client_id, "Client")
        deposit_amount = positive_amount(deposit_amount, "deposit amount")
        term_months = positive_term(term_months, "term_months")
        rate = self.branches.resolve_rate(actor.branch_id, "fdr", interest_rate)

        now = datetime.now(timezone.utc)
        fdr = FDR(
            id=new_id("fdr"),
            client_id=client.id,
            deposit_amount=deposit_amount,
            interest_rate=rate,
            term_months=term_months,
            start_date=now,
            status=SavingsStatus.ACTIVE,
            branch_id=actor.branch_id,
            created_by=actor.name
        )

        with self.store.atomic():
            transaction = self.recorder.build_transaction(
                actor, TransactionType.SAVINGS, deposit_amount, "FDR Initial Deposit",
                client_id=client.id,
                product_id=fdr.id,
                date=now
            )
            self.store.insert("fdr", fdr)
            self.store.insert("transactions", transaction)

        log_action(
            logger, "info", "FDR opened",
            user_id=actor.id, branch_id=fdr.branch_id,
            action="open_fdr", resource=fdr.id,
            details={"client_id": client.id, "deposit_amount": str(deposit_amount)}
        )
        return fdr, transaction

    def close_savings_product(
        self,
        actor: Optional[UserAccount],
        product_type: Union[SavingsProductType, str],
        product_id: str,
        amount_to_return: AmountLike,
        interest: AmountLike
    ) -> Tuple[SavingsProduct, Transaction]:
        """
        Pay out and close an ACTIVE DPS or FDR

        A single WITHDRAWAL of amount_to_return + interest is booked, with
        principal_part = amount_to_return and interest_part = interest. The
        whole withdrawal reduces savings liability.

        Returns:
            Tuple of (closed product, WITHDRAWAL Transaction)

        Raises:
            RecordNotFoundError: If the product does not exist
            InvalidOperationError: If the product is not ACTIVE
        """
        actor = require_actor(actor)
        try:
            product_type = SavingsProductType(product_type)
        except ValueError:
            raise InvalidOperationError(f"Unknown savings product type: {product_type}")

        product = self.store.require(product_type.collection, product_id, product_type.value)
        if product.status != SavingsStatus.ACTIVE:
            raise InvalidOperationError(
                f"{product_type.value} {product_id} is {product.status.value}, only ACTIVE products can be closed"
            )

        principal_part = non_negative_amount(amount_to_return, "amount to return")
        interest_part = non_negative_amount(interest, "interest")
        closed = replace(product, status=SavingsStatus.CLOSED)

        with self.store.atomic():
            transaction = self.recorder.build_transaction(
                actor, TransactionType.WITHDRAWAL, principal_part + interest_part,
                f"Closing {product_type.value} Product",
                client_id=product.client_id,
                product_id=product.id,
                interest_part=interest_part,
                principal_part=principal_part
            )
            self.store.insert("transactions", transaction)
            self.store.replace(product_type.collection, closed)

        log_action(
            logger, "info", f"{product_type.value} Closed Successfully",
            user_id=actor.id, branch_id=transaction.branch_id,
            action="close_savings_product", resource=product.id,
            details={
                "principal_part": str(principal_part),
                "interest_part": str(interest_part),
                "amount": str(transaction.amount)
            }
        )
        return closed, transaction

    def get_dps(self, dps_id: str) -> Optional[DPS]:
        """Get DPS by ID"""
        return self.store.get("dps", dps_id)

    def get_fdr(self, fdr_id: str) -> Optional[FDR]:
        """Get FDR by ID"""
        return self.store.get("fdr", fdr_id)

    def list_products(
        self,
        product_type: Union[SavingsProductType, str],
        branch_scope: str = ALL_BRANCHES
    ) -> List[SavingsProduct]:
        product_type = SavingsProductType(product_type)
        if branch_scope == ALL_BRANCHES:
            return list(self.store.collection(product_type.collection))
        return self.store.find(product_type.collection, branch_id=branch_scope)
