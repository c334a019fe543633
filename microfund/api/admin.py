"""
Administrative endpoints: branches, users and bank reconciliation
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import CommandResponse, CreateBranchRequest, CreateUserRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("/branches", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def create_branch(
    request: CreateBranchRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Create a branch (admin only)"""
    try:
        result = system.create_branch(
            session.user,
            name=request.name,
            address=request.address,
            initial_capital=request.initial_capital,
            default_loan_rate=request.default_loan_rate,
            default_dps_rate=request.default_dps_rate,
            default_fdr_rate=request.default_fdr_rate
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.post("/users", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def create_user(
    request: CreateUserRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Create a staff user (admin only)"""
    try:
        result = system.create_user(
            session.user,
            username=request.username,
            password=request.password,
            name=request.name,
            role=request.role,
            branch_id=request.branch_id
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.get("/reconciliation")
async def reconcile_bank_accounts(
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Bank accounts whose cached balance disagrees with the log"""
    if not session.user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")

    mismatches = system.reconcile_bank_accounts()
    return {
        "balanced": not mismatches,
        "mismatches": {
            account_id: {"cached": str(cached), "ledger": str(derived)}
            for account_id, (cached, derived) in mismatches.items()
        }
    }
