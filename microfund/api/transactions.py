"""
Transaction endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import CommandResponse, RecordTransactionRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..transactions import parse_transaction_type
from ..users import UserSession


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def record_transaction(
    request: RecordTransactionRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Record a collection, expense or other generic transaction"""
    try:
        result = system.record_transaction(
            session.user,
            transaction_type=request.transaction_type,
            amount=request.amount,
            description=request.description,
            client_id=request.client_id,
            product_id=request.product_id,
            interest_part=request.interest_part,
            principal_part=request.principal_part
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.get("")
async def list_transactions(
    transaction_type: Optional[str] = None,
    product_id: Optional[str] = None,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Transactions in the session's scope, newest first"""
    try:
        parsed_type = parse_transaction_type(transaction_type) if transaction_type else None
    except MicrofundError as e:
        raise to_http_error(e)

    transactions = system.recorder.get_transactions(
        session.branch_filter, transaction_type=parsed_type, product_id=product_id
    )
    return {"transactions": [transaction.to_dict() for transaction in transactions]}
