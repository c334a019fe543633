"""
Branch Module

Branches are the organizational units of the fund. Each carries its own
initial capital and the default rates offered on new loan, DPS and FDR
products. Branches are created at setup or by an administrator and are never
deleted.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import logging

from .amounts import AmountLike, non_negative_amount, to_amount
from .exceptions import InvalidOperationError, RecordNotFoundError
from .logging_config import log_action
from .records import Record, RecordStore, new_id
from .users import UserAccount, require_admin


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Branch(Record):
    """Branch with its capital and default product rates"""
    name: str
    address: str
    initial_capital: Decimal
    default_loan_rate: Decimal
    default_dps_rate: Decimal
    default_fdr_rate: Decimal


class BranchManager:
    """Branch lookup and administrative creation"""

    def __init__(self, store: RecordStore):
        self.store = store

    def create_branch(
        self,
        actor: Optional[UserAccount],
        name: str,
        address: str,
        initial_capital: AmountLike,
        default_loan_rate: AmountLike,
        default_dps_rate: AmountLike,
        default_fdr_rate: AmountLike
    ) -> Branch:
        """
        Create a new branch (administrators only)

        Initial capital may be negative; rates may not.
        """
        actor = require_admin(actor)
        if not name or not name.strip():
            raise InvalidOperationError("Branch name is required")

        branch = Branch(
            id=new_id("br"),
            name=name.strip(),
            address=address or "",
            initial_capital=to_amount(initial_capital, "initial capital"),
            default_loan_rate=non_negative_amount(default_loan_rate, "loan rate"),
            default_dps_rate=non_negative_amount(default_dps_rate, "DPS rate"),
            default_fdr_rate=non_negative_amount(default_fdr_rate, "FDR rate")
        )

        with self.store.atomic():
            self.store.insert("branches", branch)

        log_action(
            logger, "info", f"Branch {branch.name} created",
            user_id=actor.id, branch_id=branch.id,
            action="create_branch", resource=branch.id,
            details={"initial_capital": str(branch.initial_capital)}
        )
        return branch

    def get_branch(self, branch_id: str) -> Optional[Branch]:
        """Get branch by ID"""
        return self.store.get("branches", branch_id)

    def require_branch(self, branch_id: str) -> Branch:
        """Get branch by ID or raise RecordNotFoundError"""
        return self.store.require("branches", branch_id, "Branch")

    def resolve_rate(self, branch_id: str, product: str, rate: Optional[AmountLike]) -> Decimal:
        """
        Use the supplied rate, or fall back to the branch default for
        product ("loan", "dps" or "fdr").
        """
        if rate is not None:
            return non_negative_amount(rate, "interest rate")

        branch = self.get_branch(branch_id)
        if branch is None:
            raise RecordNotFoundError("Branch", branch_id)

        defaults = {
            "loan": branch.default_loan_rate,
            "dps": branch.default_dps_rate,
            "fdr": branch.default_fdr_rate,
        }
        if product not in defaults:
            raise ValueError(f"Unknown product kind: {product}")
        return defaults[product]
