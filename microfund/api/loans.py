"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import CommandResponse, DisburseLoanRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def disburse_loan(
    request: DisburseLoanRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Create and disburse a loan"""
    try:
        result = system.disburse_loan(
            session.user,
            client_id=request.client_id,
            principal=request.principal,
            term_months=request.term_months,
            method=request.method,
            interest_rate=request.interest_rate
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Get loan details"""
    loan = system.loans.get_loan(loan_id)
    if not loan or (not session.user.is_admin and loan.branch_id != session.user.branch_id):
        raise HTTPException(status_code=404, detail="Loan not found")

    result = loan.to_dict()
    result["maturity_date"] = loan.maturity_date.isoformat()
    return result
