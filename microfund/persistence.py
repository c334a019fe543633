"""
Snapshot Persistence Module

Serializes the whole record store into one JSON document and keeps it in a
storage backend under a fixed key. Loading never fails: a snapshot that
cannot be parsed, migrated or decoded is logged, backed up next to the key
and replaced by the default seed.
"""

from decimal import Decimal
from typing import Dict, Optional, Type
import json
import logging

from .bank_accounts import BankAccount
from .branches import Branch
from .clients import Client
from .config import MicrofundConfig, get_config
from .exceptions import DuplicateRecordError, SnapshotError
from .ledger import Transaction
from .loans import Loan
from .migrations import CURRENT_SCHEMA_VERSION, MigrationManager
from .records import COLLECTIONS, Record, RecordStore
from .savings import DPS, FDR
from .storage import StorageInterface
from .users import UserAccount, UserRole, generate_salt, hash_password


logger = logging.getLogger(__name__)


RECORD_TYPES: Dict[str, Type[Record]] = {
    "branches": Branch,
    "bank_accounts": BankAccount,
    "clients": Client,
    "loans": Loan,
    "dps": DPS,
    "fdr": FDR,
    "transactions": Transaction,
    "users": UserAccount,
}


def build_default_store(config: Optional[MicrofundConfig] = None) -> RecordStore:
    """Seed store: one head office branch and one administrator"""
    config = config or get_config()

    branch = Branch(
        id=config.seed_branch_id,
        name=config.seed_branch_name,
        address=config.seed_branch_address,
        initial_capital=Decimal(config.seed_initial_capital),
        default_loan_rate=Decimal(config.seed_default_loan_rate),
        default_dps_rate=Decimal(config.seed_default_dps_rate),
        default_fdr_rate=Decimal(config.seed_default_fdr_rate)
    )

    salt = generate_salt()
    admin = UserAccount(
        id=config.seed_admin_id,
        username=config.seed_admin_username,
        name=config.seed_admin_name,
        role=UserRole.ADMIN,
        branch_id=branch.id,
        password_hash=hash_password(config.seed_admin_password, salt),
        password_salt=salt
    )

    return RecordStore(branches=[branch], users=[admin])


def serialize_store(store: RecordStore) -> str:
    """Encode the store as a snapshot document"""
    document = {"schema_version": CURRENT_SCHEMA_VERSION}
    for name in COLLECTIONS:
        document[name] = [record.to_dict() for record in store.collection(name)]
    return json.dumps(document, sort_keys=True)


def deserialize_store(payload: str, migrations: Optional[MigrationManager] = None) -> RecordStore:
    """
    Decode a snapshot document, migrating older schemas first

    Raises:
        SnapshotError: If the payload is not a valid snapshot
    """
    migrations = migrations or MigrationManager()

    try:
        document = json.loads(payload, parse_float=Decimal)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e

    document = migrations.migrate(document)

    collections = {}
    for name, record_type in RECORD_TYPES.items():
        records = document.get(name, [])
        if not isinstance(records, list):
            raise SnapshotError(f"Collection {name} is not a list")
        try:
            collections[name] = [record_type.from_dict(data) for data in records]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f"Invalid {name} record: {e}") from e

    try:
        return RecordStore(**collections)
    except DuplicateRecordError as e:
        raise SnapshotError(str(e)) from e


class SnapshotRepository:
    """Loads and saves the record store through a storage backend"""

    def __init__(
        self,
        storage: StorageInterface,
        storage_key: Optional[str] = None,
        config: Optional[MicrofundConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage
        self.storage_key = storage_key or self.config.storage_key
        self.migrations = MigrationManager()

    @property
    def discarded_key(self) -> str:
        """Key holding the last snapshot that failed to load"""
        return f"{self.storage_key}.discarded"

    def load(self) -> RecordStore:
        """
        Load the stored snapshot, or the default seed when there is none

        A corrupt snapshot is copied to `discarded_key` and the seed is
        returned in its place.
        """
        payload = self.storage.read(self.storage_key)
        if payload is None:
            logger.info(f"No snapshot under {self.storage_key}, starting from seed")
            return build_default_store(self.config)

        try:
            store = deserialize_store(payload, self.migrations)
        except SnapshotError as e:
            logger.error(
                f"Discarding unreadable snapshot {self.storage_key}: {e}",
                extra={"action": "load_snapshot", "resource": self.storage_key,
                       "details": {"payload": payload[:2000]}}
            )
            try:
                self.storage.write(self.discarded_key, payload)
            except Exception as backup_error:
                logger.error(f"Could not back up discarded snapshot: {backup_error}")
            return build_default_store(self.config)

        logger.info(f"Loaded snapshot {self.storage_key}: {store.counts()}")
        return store

    def persist(self, store: RecordStore) -> bool:
        """
        Save the store; returns False if the backend failed

        A failure is logged and never undoes the in-memory state.
        """
        try:
            self.storage.write(self.storage_key, serialize_store(store))
        except Exception as e:
            logger.error(f"Failed to persist snapshot {self.storage_key}: {e}", exc_info=True)
            return False
        return True
