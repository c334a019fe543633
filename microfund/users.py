"""
User Accounts & Sessions Module

Staff users, roles, password hashing and login sessions. Every mutation in
the system is performed by an authenticated user bound to a home branch; an
ADMIN may view any branch or the consolidated "ALL" scope, a MANAGER is
pinned to their own branch.
"""

import hashlib
import hmac
import secrets
import logging
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Dict, Optional

from .exceptions import (
    AuthorizationError, DuplicateRecordError, InvalidOperationError, NotAuthenticatedError
)
from .logging_config import log_action
from .records import ALL_BRANCHES, Record, RecordStore, new_id


logger = logging.getLogger(__name__)


class UserRole(Enum):
    """Staff roles"""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"


@dataclass(frozen=True)
class UserAccount(Record):
    """Staff user with hashed credentials"""
    username: str
    name: str
    role: UserRole
    branch_id: str
    password_hash: str = ""
    password_salt: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def public_dict(self) -> Dict[str, str]:
        """Dictionary without credential fields"""
        data = self.to_dict()
        data.pop('password_hash')
        data.pop('password_salt')
        return data


@dataclass
class UserSession:
    """Logged-in user plus the branch scope they are currently viewing"""
    id: str
    user: UserAccount
    branch_filter: str
    created_at: datetime
    expires_at: datetime
    is_active: bool = True

    @property
    def is_valid(self) -> bool:
        """Check if session is still valid"""
        return self.is_active and self.expires_at > datetime.now(timezone.utc)


def generate_salt() -> str:
    """Generate random salt for password hashing"""
    return secrets.token_hex(16)


def hash_password(password: str, salt: str) -> str:
    """Hash password with salt using scrypt"""
    return hashlib.scrypt(
        password.encode(),
        salt=salt.encode(),
        n=16384, r=8, p=1
    ).hex()


def verify_password(user: UserAccount, password: str) -> bool:
    """Verify password against stored hash"""
    if not user.password_hash or not user.password_salt:
        return False
    expected = hash_password(password, user.password_salt)
    return hmac.compare_digest(expected, user.password_hash)


def require_actor(actor: Optional[UserAccount]) -> UserAccount:
    """Fail fast unless the operation has an authenticated, branch-bound user"""
    if actor is None:
        raise NotAuthenticatedError("Operation requires an authenticated user")
    if not actor.branch_id:
        raise NotAuthenticatedError(f"User {actor.username} is not bound to a branch")
    return actor


def require_admin(actor: Optional[UserAccount]) -> UserAccount:
    actor = require_actor(actor)
    if not actor.is_admin:
        raise AuthorizationError(f"User {actor.username} is not an administrator")
    return actor


def default_branch_filter(user: UserAccount) -> str:
    """Admins start on the consolidated view, everyone else on their branch"""
    return ALL_BRANCHES if user.is_admin else user.branch_id


class UserManager:
    """User creation, authentication and session handling"""

    def __init__(self, store: RecordStore, session_timeout_minutes: int = 480):
        self.store = store
        self.session_timeout = timedelta(minutes=session_timeout_minutes)
        self._sessions: Dict[str, UserSession] = {}

    def create_user(
        self,
        actor: Optional[UserAccount],
        username: str,
        password: str,
        name: str,
        role: UserRole,
        branch_id: str
    ) -> UserAccount:
        """Create a staff user (administrators only)"""
        actor = require_admin(actor)

        if not username or not username.strip():
            raise InvalidOperationError("Username is required")
        if not password:
            raise InvalidOperationError("Password is required")
        if self.get_user_by_username(username.strip()):
            raise DuplicateRecordError(f"Username '{username}' already exists")

        try:
            role = UserRole(role)
        except ValueError:
            raise InvalidOperationError(f"Unknown role: {role}")

        self.store.require("branches", branch_id, "Branch")

        salt = generate_salt()
        user = UserAccount(
            id=new_id("u"),
            username=username.strip(),
            name=name or username.strip(),
            role=role,
            branch_id=branch_id,
            password_hash=hash_password(password, salt),
            password_salt=salt
        )

        with self.store.atomic():
            self.store.insert("users", user)

        log_action(
            logger, "info", f"User {user.username} created",
            user_id=actor.id, branch_id=branch_id,
            action="create_user", resource=user.id,
            details={"role": user.role.value}
        )
        return user

    def get_user(self, user_id: str) -> Optional[UserAccount]:
        """Get user by ID"""
        return self.store.get("users", user_id)

    def get_user_by_username(self, username: str) -> Optional[UserAccount]:
        """Get user by username"""
        users = self.store.find("users", username=username)
        return users[0] if users else None

    def authenticate(self, username: str, password: str) -> UserAccount:
        """Verify credentials and return the user"""
        user = self.get_user_by_username(username)
        if user is None or not verify_password(user, password):
            log_action(logger, "warning", "Authentication failed",
                       action="login_failed", resource=username)
            raise NotAuthenticatedError("Invalid credentials")
        return user

    def open_session(self, user: UserAccount) -> UserSession:
        """Create a session for an authenticated user"""
        now = datetime.now(timezone.utc)
        self._prune_expired()
        session = UserSession(
            id=secrets.token_urlsafe(32),
            user=user,
            branch_filter=default_branch_filter(user),
            created_at=now,
            expires_at=now + self.session_timeout
        )
        self._sessions[session.id] = session

        log_action(logger, "info", f"Logged in as {user.name}",
                   user_id=user.id, branch_id=user.branch_id,
                   action="login", resource=user.id)
        return session

    def get_session(self, session_id: str) -> Optional[UserSession]:
        """Return the session if it exists and is still valid"""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if not session.is_valid:
            del self._sessions[session_id]
            return None
        return session

    def _prune_expired(self) -> None:
        expired = [key for key, session in self._sessions.items() if not session.is_valid]
        for key in expired:
            del self._sessions[key]

    def close_session(self, session_id: str) -> bool:
        """Log out; returns False for unknown sessions"""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.is_active = False
        log_action(logger, "info", "Logged out",
                   user_id=session.user.id, action="logout", resource=session.user.id)
        return True
