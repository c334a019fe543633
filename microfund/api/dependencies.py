"""
Shared API dependencies: the system instance, bearer-token sessions and the
mapping from domain exceptions to HTTP errors
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..exceptions import (
    AuthorizationError, DuplicateRecordError, InvalidOperationError,
    MicrofundError, NotAuthenticatedError, RecordNotFoundError
)
from ..system import MicrofinanceSystem
from ..users import UserSession


security = HTTPBearer(auto_error=False)

# Global system instance, created on first use
_system: Optional[MicrofinanceSystem] = None


def get_system() -> MicrofinanceSystem:
    global _system
    if _system is None:
        _system = MicrofinanceSystem()
    return _system


def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: MicrofinanceSystem = Depends(get_system)
) -> UserSession:
    """Dependency that resolves the bearer token to a live session"""
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    session = system.get_session(credentials.credentials)
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    return session


def to_http_error(error: MicrofundError) -> HTTPException:
    """Translate a domain exception into an HTTPException"""
    if isinstance(error, NotAuthenticatedError):
        code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(error, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, RecordNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, DuplicateRecordError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, InvalidOperationError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(error))
