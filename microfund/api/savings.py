"""
DPS and FDR endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import CloseSavingsRequest, CommandResponse, OpenDPSRequest, OpenFDRRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("/dps", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def open_dps(
    request: OpenDPSRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Open a DPS and book the first installment"""
    try:
        result = system.open_dps(
            session.user,
            client_id=request.client_id,
            monthly_amount=request.monthly_amount,
            term_years=request.term_years,
            interest_rate=request.interest_rate
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.post("/fdr", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def open_fdr(
    request: OpenFDRRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Open an FDR and book the deposit"""
    try:
        result = system.open_fdr(
            session.user,
            client_id=request.client_id,
            deposit_amount=request.deposit_amount,
            term_months=request.term_months,
            interest_rate=request.interest_rate
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.post("/{product_type}/{product_id}/close", response_model=CommandResponse)
async def close_savings_product(
    product_type: str,
    product_id: str,
    request: CloseSavingsRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Pay out and close a DPS or FDR"""
    try:
        result = system.close_savings_product(
            session.user,
            product_type=product_type.upper(),
            product_id=product_id,
            amount_to_return=request.amount_to_return,
            interest=request.interest
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)
