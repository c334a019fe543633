"""
Login, logout and branch selection endpoints
"""

from fastapi import APIRouter, Depends

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import LoginRequest, SelectBranchRequest, SessionResponse
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("/login", response_model=SessionResponse)
async def login(
    request: LoginRequest,
    system: MicrofinanceSystem = Depends(get_system)
):
    """Authenticate and receive a bearer token"""
    try:
        session = system.login(request.username, request.password)
    except MicrofundError as e:
        raise to_http_error(e)

    return SessionResponse.from_session(session, f"Logged in as {session.user.name}")


@router.post("/logout")
async def logout(
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """End the current session"""
    system.logout(session)
    return {"message": "Logged out"}


@router.put("/branch", response_model=SessionResponse)
async def select_branch(
    request: SelectBranchRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Switch the branch the session is viewing"""
    try:
        scope = system.select_branch(session, request.branch_id)
    except MicrofundError as e:
        raise to_http_error(e)

    return SessionResponse.from_session(session, f"Viewing {scope}")


@router.get("/me")
async def get_me(session: UserSession = Depends(get_current_session)):
    """Current user and branch filter"""
    return {
        "user": session.user.public_dict(),
        "branch_filter": session.branch_filter
    }
