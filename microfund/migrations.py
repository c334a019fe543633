"""
Snapshot Migration System

Upgrades persisted snapshot documents to the current schema before they are
decoded into records. Each migration takes the document at version N and
returns it at version N + 1; loading runs every pending migration in order.

Schema versions:
    1: Legacy layout. camelCase field names, no schema_version key,
       plaintext passwords, transient currentUser slot.
    2: snake_case fields, one array per collection, salted password hashes,
       timezone-aware ISO-8601 timestamps.
"""

from typing import Any, Callable, Dict, List, Optional
from datetime import datetime
import copy
import logging

from .exceptions import SnapshotError
from .records import as_utc
from .users import generate_salt, hash_password


logger = logging.getLogger(__name__)


CURRENT_SCHEMA_VERSION = 2

Document = Dict[str, Any]


# Legacy top-level keys
LEGACY_COLLECTION_KEYS = {
    "branches": "branches",
    "bankAccounts": "bank_accounts",
    "clients": "clients",
    "loans": "loans",
    "dps": "dps",
    "fdr": "fdr",
    "transactions": "transactions",
    "users": "users",
}

# Legacy record field names; anything not listed keeps its name
LEGACY_FIELD_NAMES = {
    "initialCapital": "initial_capital",
    "defaultLoanRate": "default_loan_rate",
    "defaultDPSRate": "default_dps_rate",
    "defaultFDRRate": "default_fdr_rate",
    "bankName": "bank_name",
    "accountNumber": "account_number",
    "accountType": "account_type",
    "branchId": "branch_id",
    "kycId": "kyc_id",
    "joinDate": "join_date",
    "createdBy": "created_by",
    "clientId": "client_id",
    "interestRate": "interest_rate",
    "termMonths": "term_months",
    "startDate": "start_date",
    "remainingPrincipal": "remaining_principal",
    "monthlyAmount": "monthly_amount",
    "termYears": "term_years",
    "depositAmount": "deposit_amount",
    "interestPart": "interest_part",
    "principalPart": "principal_part",
    "productId": "product_id",
    "bankAccountId": "bank_account_id",
    "performedBy": "performed_by",
}

TIMESTAMP_FIELDS = ("date", "join_date", "start_date")


class Migration:
    """Represents a single snapshot migration"""

    def __init__(self, version: int, name: str, upgrade: Callable[[Document], Document]):
        self.version = version
        self.name = name
        self.upgrade = upgrade

    def __str__(self) -> str:
        return f"Migration v{self.version:03d}: {self.name}"

    def __repr__(self) -> str:
        return f"Migration(version={self.version}, name='{self.name}')"


def normalize_timestamp(value: Any) -> Optional[str]:
    """ISO-8601 string in UTC; a trailing 'Z' or a missing offset means UTC"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise SnapshotError(f"Invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise SnapshotError(f"Invalid timestamp: {value!r}")

    return as_utc(parsed).isoformat()


def _upgrade_legacy_record(record: Dict[str, Any]) -> Dict[str, Any]:
    upgraded = {LEGACY_FIELD_NAMES.get(key, key): value for key, value in record.items()}
    for name in TIMESTAMP_FIELDS:
        if name in upgraded:
            upgraded[name] = normalize_timestamp(upgraded[name])
    return upgraded


def _upgrade_legacy_user(record: Dict[str, Any]) -> Dict[str, Any]:
    upgraded = _upgrade_legacy_record(record)
    password = upgraded.pop("password", None)
    if password is not None and not upgraded.get("password_hash"):
        salt = generate_salt()
        upgraded["password_salt"] = salt
        upgraded["password_hash"] = hash_password(str(password), salt)
    return upgraded


def upgrade_v1_to_v2(document: Document) -> Document:
    """Rename legacy fields, hash plaintext passwords and drop currentUser"""
    upgraded: Document = {}
    for legacy_key, collection in LEGACY_COLLECTION_KEYS.items():
        records = document.get(legacy_key, document.get(collection, []))
        if records is None:
            records = []
        if not isinstance(records, list):
            raise SnapshotError(f"Collection {legacy_key} is not a list")

        convert = _upgrade_legacy_user if collection == "users" else _upgrade_legacy_record
        upgraded[collection] = [convert(record) for record in records]

    upgraded["schema_version"] = 2
    return upgraded


class MigrationManager:
    """Manages snapshot migrations"""

    def __init__(self):
        self.migrations: List[Migration] = []
        self._init_migrations()

    def _init_migrations(self) -> None:
        """Initialize built-in migrations"""
        self.add_migration(2, "Snake-case fields and hashed credentials", upgrade_v1_to_v2)

    def add_migration(self, version: int, name: str, upgrade: Callable[[Document], Document]) -> None:
        """Add a migration to the manager"""
        self.migrations.append(Migration(version, name, upgrade))
        # Keep migrations sorted by version
        self.migrations.sort(key=lambda m: m.version)

    @property
    def latest_version(self) -> int:
        return max((m.version for m in self.migrations), default=1)

    def get_document_version(self, document: Document) -> int:
        """Schema version of a document; documents without one are legacy"""
        version = document.get("schema_version", 1)
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise SnapshotError(f"Invalid schema_version: {version!r}")
        return version

    def get_pending_migrations(self, document: Document) -> List[Migration]:
        """Migrations still to run on a document"""
        current = self.get_document_version(document)
        if current > self.latest_version:
            raise SnapshotError(
                f"Snapshot schema v{current} is newer than supported v{self.latest_version}"
            )
        return [m for m in self.migrations if m.version > current]

    def migrate(self, document: Document) -> Document:
        """
        Bring a document up to the latest schema

        The input is left untouched.

        Raises:
            SnapshotError: If the document cannot be migrated
        """
        if not isinstance(document, dict):
            raise SnapshotError("Snapshot must be a JSON object")

        pending = self.get_pending_migrations(document)
        if not pending:
            return document

        migrated = copy.deepcopy(document)
        for migration in pending:
            logger.info(f"Applying {migration}")
            try:
                migrated = migration.upgrade(migrated)
            except SnapshotError:
                raise
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise SnapshotError(f"{migration} failed: {e}") from e
            migrated["schema_version"] = migration.version

        return migrated
