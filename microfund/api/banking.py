"""
Bank account endpoints
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import BankTransactionRequest, CommandResponse, CreateBankAccountRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("/accounts", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def add_bank_account(
    request: CreateBankAccountRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Register a bank account for a branch"""
    try:
        result = system.add_bank_account(
            session.user,
            branch_id=request.branch_id,
            bank_name=request.bank_name,
            account_number=request.account_number,
            account_type=request.account_type
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.post("/accounts/{bank_account_id}/transactions", status_code=status.HTTP_201_CREATED,
             response_model=CommandResponse)
async def record_bank_transaction(
    bank_account_id: str,
    request: BankTransactionRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Deposit into or withdraw from a bank account"""
    transaction_date = None
    if request.date:
        try:
            transaction_date = datetime.fromisoformat(request.date.replace("Z", "+00:00"))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid date: {request.date}")

    try:
        result = system.record_bank_transaction(
            session.user,
            bank_account_id=bank_account_id,
            transaction_type=request.transaction_type,
            amount=request.amount,
            date=transaction_date,
            description=request.description
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.get("/accounts/{bank_account_id}")
async def get_bank_account(
    bank_account_id: str,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Get bank account details with its balance recomputed from the log"""
    account = system.banking.get_bank_account(bank_account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Bank account not found")
    if not session.user.is_admin and account.branch_id != session.user.branch_id:
        raise HTTPException(status_code=404, detail="Bank account not found")

    result = account.to_dict()
    result["ledger_balance"] = str(system.banking.ledger_balance(account.id))
    return result
