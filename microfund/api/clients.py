"""
Client endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_current_session, get_system, to_http_error
from .schemas import CommandResponse, RegisterClientRequest, UpdateClientStatusRequest
from ..exceptions import MicrofundError
from ..system import MicrofinanceSystem
from ..users import UserSession


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, response_model=CommandResponse)
async def register_client(
    request: RegisterClientRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Register a client at the current user's branch"""
    try:
        result = system.register_client(
            session.user,
            name=request.name,
            kyc_id=request.kyc_id,
            phone=request.phone,
            address=request.address
        )
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.put("/{client_id}/status", response_model=CommandResponse)
async def update_client_status(
    client_id: str,
    request: UpdateClientStatusRequest,
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Change a client's status"""
    try:
        result = system.update_client_status(session.user, client_id, request.status)
    except MicrofundError as e:
        raise to_http_error(e)

    return CommandResponse.from_result(result)


@router.get("")
async def search_clients(
    q: str = "",
    session: UserSession = Depends(get_current_session),
    system: MicrofinanceSystem = Depends(get_system)
):
    """Clients in the session's scope, optionally filtered by name, KYC id or phone"""
    clients = system.clients.search_clients(q, session.branch_filter)
    return {"clients": [client.to_dict() for client in clients]}
