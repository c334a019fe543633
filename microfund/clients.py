"""
Client Management Module

Registers borrowers and savers against the acting user's branch. A client's
status is maintained independently of the ledger; registering or changing a
client never moves cash.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union
import logging

from .exceptions import InvalidOperationError
from .logging_config import log_action
from .records import ALL_BRANCHES, Record, RecordStore, new_id
from .users import UserAccount, require_actor


logger = logging.getLogger(__name__)


class ClientStatus(Enum):
    """Client lifecycle states"""
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class Client(Record):
    """Borrower or saver registered at a branch"""
    name: str
    kyc_id: str
    phone: str
    address: str
    join_date: datetime
    status: ClientStatus
    branch_id: str
    created_by: str


class ClientManager:
    """Client registration and lookups"""

    def __init__(self, store: RecordStore):
        self.store = store

    def register_client(
        self,
        actor: Optional[UserAccount],
        name: str,
        kyc_id: str,
        phone: str = "",
        address: str = ""
    ) -> Client:
        """
        Register a new ACTIVE client at the actor's branch

        Args:
            actor: Authenticated user performing the registration
            name: Client's full name
            kyc_id: National ID or other KYC identifier
            phone: Contact phone
            address: Postal address

        Returns:
            Created Client
        """
        actor = require_actor(actor)
        if not name or not name.strip():
            raise InvalidOperationError("Client name is required")
        if not kyc_id or not kyc_id.strip():
            raise InvalidOperationError("KYC identifier is required")

        client = Client(
            id=new_id("c"),
            name=name.strip(),
            kyc_id=kyc_id.strip(),
            phone=phone or "",
            address=address or "",
            join_date=datetime.now(timezone.utc),
            status=ClientStatus.ACTIVE,
            branch_id=actor.branch_id,
            created_by=actor.name
        )

        with self.store.atomic():
            self.store.insert("clients", client)

        log_action(
            logger, "info", "Client registered",
            user_id=actor.id, branch_id=client.branch_id,
            action="register_client", resource=client.id
        )
        return client

    def update_client_status(
        self,
        actor: Optional[UserAccount],
        client_id: str,
        status: Union[ClientStatus, str]
    ) -> Client:
        """Change a client's status; no ledger effect"""
        actor = require_actor(actor)
        try:
            status = ClientStatus(status)
        except ValueError:
            raise InvalidOperationError(f"Unknown client status: {status}")

        client = self.require_client(client_id)
        updated = replace(client, status=status)

        with self.store.atomic():
            self.store.replace("clients", updated)

        log_action(
            logger, "info", f"Client status changed to {status.value}",
            user_id=actor.id, branch_id=client.branch_id,
            action="update_client_status", resource=client.id,
            details={"old_status": client.status.value, "new_status": status.value}
        )
        return updated

    def get_client(self, client_id: str) -> Optional[Client]:
        """Get client by ID"""
        return self.store.get("clients", client_id)

    def require_client(self, client_id: str) -> Client:
        """Get client by ID or raise RecordNotFoundError"""
        return self.store.require("clients", client_id, "Client")

    def list_clients(self, branch_scope: str = ALL_BRANCHES) -> List[Client]:
        """Clients in a scope"""
        if branch_scope == ALL_BRANCHES:
            return list(self.store.clients)
        return self.store.find("clients", branch_id=branch_scope)

    def search_clients(self, query: str, branch_scope: str = ALL_BRANCHES) -> List[Client]:
        """Case-insensitive match on name, KYC id or phone"""
        needle = query.strip().lower()
        return [
            client for client in self.list_clients(branch_scope)
            if needle in client.name.lower()
            or needle in client.kyc_id.lower()
            or needle in client.phone.lower()
        ]
