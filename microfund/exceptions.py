"""Domain exceptions for the bookkeeping core"""


class MicrofundError(Exception):
    """Base exception for the bookkeeping core"""

    pass


class NotAuthenticatedError(MicrofundError, PermissionError):
    """Operation attempted without an authenticated, branch-bound user"""

    pass


class AuthorizationError(MicrofundError, PermissionError):
    """Authenticated user's role does not allow the operation"""

    pass


class RecordNotFoundError(MicrofundError, LookupError):
    """Referenced branch, account, client or product does not exist"""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class DuplicateRecordError(MicrofundError, ValueError):
    """A record with the same identity already exists"""

    pass


class InvalidOperationError(MicrofundError, ValueError):
    """Arguments or record state do not allow the operation"""

    pass


class InsufficientFundsError(InvalidOperationError):
    """Cash outflow would overdraw the branch (only when the guard is enabled)"""

    pass


class SnapshotError(MicrofundError):
    """Persisted snapshot could not be decoded or migrated"""

    pass
