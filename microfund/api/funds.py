"""
Fund position and scoped record endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import FundStateResponse
from ..exceptions import MicrofundError
from ..scope import resolve_branch_scope
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.get("/funds", response_model=FundStateResponse)
async def get_fund_state(
    branch_id: Optional[str] = None,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """FundState for a branch or ALL; defaults to the session's branch filter"""
    try:
        scope = resolve_branch_scope(session.user, branch_id or session.branch_filter)
        state = system.get_fund_state(scope)
    except MicrofundError as e:
        raise to_http_error(e)

    return FundStateResponse.from_state(scope, state)


@router.get("/records")
async def get_scoped_records(
    branch_id: Optional[str] = None,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Every record visible in a scope"""
    try:
        view = system.get_scoped_records(branch_id or session.branch_filter, actor=session.user)
    except MicrofundError as e:
        raise to_http_error(e)

    return view.to_dict()
