"""
Microfinance System Module

The application context. Owns the record store, the snapshot repository, the
managers and the derived-state caches. Every command and query is routed
through one MicrofinanceSystem with an explicit acting user; after each
mutation the snapshot is persisted and the result reports whether that
succeeded.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple, Union
import logging
import threading

from .amounts import AmountLike, ZERO
from .bank_accounts import BankAccountType, BankingManager
from .branches import BranchManager
from .clients import ClientManager, ClientStatus
from .config import MicrofundConfig, get_config
from .exceptions import RecordNotFoundError
from .ledger import FundState, FundStateCache, TransactionType
from .loans import InterestMethod, LoanManager
from .persistence import SnapshotRepository
from .records import ALL_BRANCHES, Record, VersionedCache
from .savings import SavingsManager, SavingsProductType
from .scope import ScopedView, resolve_branch_scope, scope_records
from .storage import StorageInterface, create_storage
from .transactions import TransactionRecorder
from .users import UserAccount, UserManager, UserRole, UserSession


logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a command: user-facing message plus ids of what was created"""
    message: str
    ids: Dict[str, str] = field(default_factory=dict)
    records: Dict[str, Record] = field(default_factory=dict)
    persisted: bool = True


class MicrofinanceSystem:
    """Entry point for every bookkeeping command and query"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[MicrofundConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config)
        self.repository = SnapshotRepository(self.storage, self.config.storage_key, self.config)
        self.store = self.repository.load()

        self.branches = BranchManager(self.store)
        self.users = UserManager(self.store, self.config.session_timeout_minutes)
        self.recorder = TransactionRecorder(self.store, self.config.enforce_cash_sufficiency)
        self.banking = BankingManager(self.store, self.recorder)
        self.clients = ClientManager(self.store)
        self.loans = LoanManager(self.store, self.recorder, self.branches)
        self.savings = SavingsManager(self.store, self.recorder, self.branches)

        self._fund_cache = FundStateCache()
        self._scope_cache = VersionedCache()
        self._lock = threading.RLock()

    # Sessions

    def login(self, username: str, password: str) -> UserSession:
        """Authenticate and open a session"""
        with self._lock:
            user = self.users.authenticate(username, password)
            return self.users.open_session(user)

    def logout(self, session: Union[UserSession, str]) -> bool:
        session_id = session.id if isinstance(session, UserSession) else session
        with self._lock:
            return self.users.close_session(session_id)

    def get_session(self, session_id: str) -> Optional[UserSession]:
        with self._lock:
            return self.users.get_session(session_id)

    def select_branch(self, session: UserSession, branch_id: str) -> str:
        """
        Change the branch a session is viewing

        Administrators may pick any existing branch or "ALL"; other users
        stay on their home branch.
        """
        with self._lock:
            scope = resolve_branch_scope(session.user, branch_id)
            if scope != ALL_BRANCHES:
                self.branches.require_branch(scope)
            session.branch_filter = scope
            return scope

    # Queries

    def get_fund_state(self, branch_id: str = ALL_BRANCHES, actor: Optional[UserAccount] = None) -> FundState:
        """FundState of a scope; with an actor the access policy applies first"""
        with self._lock:
            if actor is not None:
                branch_id = resolve_branch_scope(actor, branch_id)
            return self._fund_cache.get(self.store, branch_id)

    def get_scoped_records(self, branch_id: str = ALL_BRANCHES, actor: Optional[UserAccount] = None) -> ScopedView:
        """Records visible in a scope; with an actor the access policy applies first"""
        with self._lock:
            if actor is not None:
                branch_id = resolve_branch_scope(actor, branch_id)
            return self._scope_cache.get(self.store, branch_id, lambda: scope_records(self.store, branch_id))

    def reconcile_bank_accounts(self) -> Dict[str, Tuple[Decimal, Decimal]]:
        with self._lock:
            return self.banking.reconcile()

    # Commands

    def add_bank_account(
        self,
        actor: Optional[UserAccount],
        branch_id: str,
        bank_name: str,
        account_number: str,
        account_type: Union[BankAccountType, str]
    ) -> CommandResult:
        with self._lock:
            account = self.banking.add_bank_account(actor, branch_id, bank_name, account_number, account_type)
            return self._committed("Bank Account Added", bank_account=account)

    def record_bank_transaction(
        self,
        actor: Optional[UserAccount],
        bank_account_id: str,
        transaction_type: Union[TransactionType, str],
        amount: AmountLike,
        date: Optional[datetime] = None,
        description: str = ""
    ) -> CommandResult:
        with self._lock:
            transaction, account = self.banking.record_bank_transaction(
                actor, bank_account_id, transaction_type, amount, date, description
            )
            return self._committed("Bank Transaction Recorded", transaction=transaction, bank_account=account)

    def register_client(
        self,
        actor: Optional[UserAccount],
        name: str,
        kyc_id: str,
        phone: str = "",
        address: str = ""
    ) -> CommandResult:
        with self._lock:
            client = self.clients.register_client(actor, name, kyc_id, phone, address)
            return self._committed("Client registered", client=client)

    def update_client_status(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        status: Union[ClientStatus, str]
    ) -> CommandResult:
        with self._lock:
            client = self.clients.update_client_status(actor, client_id, status)
            return self._committed(f"Client status changed to {client.status.value}", client=client)

    def disburse_loan(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        principal: AmountLike,
        term_months: int,
        method: Union[InterestMethod, str] = InterestMethod.FLAT,
        interest_rate: Optional[AmountLike] = None
    ) -> CommandResult:
        with self._lock:
            loan, transaction = self.loans.disburse_loan(
                actor, client_id, principal, term_months, method, interest_rate
            )
            return self._committed("Loan disbursed", loan=loan, transaction=transaction)

    def open_dps(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        monthly_amount: AmountLike,
        term_years: int,
        interest_rate: Optional[AmountLike] = None
    ) -> CommandResult:
        with self._lock:
            dps, transaction = self.savings.open_dps(actor, client_id, monthly_amount, term_years, interest_rate)
            return self._committed("DPS opened", dps=dps, transaction=transaction)

    def open_fdr(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        deposit_amount: AmountLike,
        term_months: int,
        interest_rate: Optional[AmountLike] = None
    ) -> CommandResult:
        with self._lock:
            fdr, transaction = self.savings.open_fdr(actor, client_id, deposit_amount, term_months, interest_rate)
            return self._committed("FDR opened", fdr=fdr, transaction=transaction)

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
    ) -> CommandResult:
        with self._lock:
            transaction = self.recorder.record_transaction(
                actor, transaction_type, amount, description,
                client_id, product_id, interest_part, principal_part
            )
            return self._committed("Transaction recorded", transaction=transaction)

    def close_savings_product(
        self,
        actor: Optional[UserAccount],
        product_type: Union[SavingsProductType, str],
        product_id: str,
        amount_to_return: AmountLike,
        interest: AmountLike
    ) -> CommandResult:
        with self._lock:
            product, transaction = self.savings.close_savings_product(
                actor, product_type, product_id, amount_to_return, interest
            )
            product_type = SavingsProductType(product_type)
            return self._committed(
                f"{product_type.value} Closed Successfully",
                **{product_type.collection: product, "transaction": transaction}
            )

    def create_branch(
        self,
        actor: Optional[UserAccount],
        name: str,
        address: str,
        initial_capital: AmountLike,
        default_loan_rate: AmountLike,
        default_dps_rate: AmountLike,
        default_fdr_rate: AmountLike
    ) -> CommandResult:
        with self._lock:
            branch = self.branches.create_branch(
                actor, name, address, initial_capital,
                default_loan_rate, default_dps_rate, default_fdr_rate
            )
            return self._committed("Branch created", branch=branch)

    def create_user(
        self,
        actor: Optional[UserAccount],
        username: str,
        password: str,
        name: str,
        role: Union[UserRole, str],
        branch_id: str
    ) -> CommandResult:
        with self._lock:
            user = self.users.create_user(actor, username, password, name, role, branch_id)
            return self._committed("User created", user=user)

    def get_user(self, user_id: str) -> UserAccount:
        user = self.users.get_user(user_id)
        if user is None:
            raise RecordNotFoundError("User", user_id)
        return user

    def close(self) -> None:
        """Release the storage backend"""
        self.storage.close()

    def _committed(self, message: str, **records: Record) -> CommandResult:
        persisted = self.repository.persist(self.store)
        if not persisted:
            logger.warning(f"{message}; snapshot not saved")
        return CommandResult(
            message=message,
            ids={f"{kind}_id": record.id for kind, record in records.items()},
            records=records,
            persisted=persisted
        )
