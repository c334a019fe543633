"""
Scope Filter

Narrows the record collections to one branch, or leaves them whole for the
consolidated "ALL" view, and decides which scope a user may look at.
Branches and users are never filtered.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .exceptions import NotAuthenticatedError
from .ledger import FundState, compute_fund_state, in_scope
from .records import ALL_BRANCHES, RecordStore
from .users import UserAccount


@dataclass(frozen=True)
class ScopedView:
    """Read-only record sets for one scope"""
    branch_id: str
    branches: Tuple = ()
    bank_accounts: Tuple = ()
    clients: Tuple = ()
    loans: Tuple = ()
    dps: Tuple = ()
    fdr: Tuple = ()
    transactions: Tuple = ()
    users: Tuple = ()

    def fund_state(self) -> FundState:
        return compute_fund_state(self.branch_id, self.transactions, self.loans, self.branches)

    def to_dict(self) -> dict:
        return {
            "branch_id": self.branch_id,
            "branches": [record.to_dict() for record in self.branches],
            "bank_accounts": [record.to_dict() for record in self.bank_accounts],
            "clients": [record.to_dict() for record in self.clients],
            "loans": [record.to_dict() for record in self.loans],
            "dps": [record.to_dict() for record in self.dps],
            "fdr": [record.to_dict() for record in self.fdr],
            "transactions": [record.to_dict() for record in self.transactions],
            "users": [record.public_dict() for record in self.users],
        }


def scope_records(store: RecordStore, branch_id: str) -> ScopedView:
    """Restrict branch-bound collections to branch_id ("ALL" keeps everything)"""

    def narrow(records):
        return tuple(record for record in records if in_scope(record, branch_id))

    return ScopedView(
        branch_id=branch_id,
        branches=tuple(store.branches),
        bank_accounts=narrow(store.bank_accounts),
        clients=narrow(store.clients),
        loans=narrow(store.loans),
        dps=narrow(store.dps),
        fdr=narrow(store.fdr),
        transactions=narrow(store.transactions),
        users=tuple(store.users)
    )


def resolve_branch_scope(user: Optional[UserAccount], requested: Optional[str] = None) -> str:
    """
    Scope a user is allowed to view.

    Administrators get what they ask for (default "ALL"). Anyone else is
    held to their home branch whatever they request.
    """
    if user is None:
        raise NotAuthenticatedError("Viewing records requires an authenticated user")
    if user.is_admin:
        return requested or ALL_BRANCHES
    return user.branch_id
