"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..ledger import FundState
from ..records import Record
from ..system import CommandResult
from ..users import UserAccount, UserSession


def record_to_dict(record: Record) -> Dict[str, Any]:
    """JSON-safe record; user credentials are never exposed"""
    if isinstance(record, UserAccount):
        return record.public_dict()
    return record.to_dict()


# Auth schemas
class LoginRequest(BaseModel):
    username: str
    password: str


class SelectBranchRequest(BaseModel):
    branch_id: str = Field(..., description="Branch id or ALL")


class SessionResponse(BaseModel):
    token: str
    message: str
    branch_filter: str
    expires_at: str
    user: Dict[str, Any]

    @classmethod
    def from_session(cls, session: UserSession, message: str = "") -> 'SessionResponse':
        return cls(
            token=session.id,
            message=message,
            branch_filter=session.branch_filter,
            expires_at=session.expires_at.isoformat(),
            user=session.user.public_dict()
        )


# Fund schemas
class FundStateResponse(BaseModel):
    branch_id: str
    total_capital: str = Field(..., description="Decimal amount as string")
    available_cash: str = Field(..., description="Decimal amount as string")
    total_loans_out: str = Field(..., description="Decimal amount as string")
    total_savings_liability: str = Field(..., description="Decimal amount as string")

    @classmethod
    def from_state(cls, branch_id: str, state: FundState) -> 'FundStateResponse':
        return cls(branch_id=branch_id, **state.to_dict())


# Banking schemas
class CreateBankAccountRequest(BaseModel):
    branch_id: str
    bank_name: str
    account_number: str
    account_type: str = Field(..., description="SAVINGS, CURRENT or FIXED")


class BankTransactionRequest(BaseModel):
    transaction_type: str = Field(..., description="BANK_DEPOSIT or BANK_WITHDRAWAL")
    amount: str = Field(..., description="Decimal amount as string")
    date: Optional[str] = None  # ISO datetime string
    description: str = ""


# Client schemas
class RegisterClientRequest(BaseModel):
    name: str
    kyc_id: str
    phone: str = ""
    address: str = ""


class UpdateClientStatusRequest(BaseModel):
    status: str = Field(..., description="ACTIVE, PENDING or CLOSED")


# Loan schemas
class DisburseLoanRequest(BaseModel):
    client_id: str
    principal: str = Field(..., description="Decimal amount as string")
    term_months: int
    method: str = Field("FLAT", description="FLAT or REDUCING")
    interest_rate: Optional[str] = None  # Branch default when omitted


# Savings schemas
class OpenDPSRequest(BaseModel):
    client_id: str
    monthly_amount: str = Field(..., description="Decimal amount as string")
    term_years: int
    interest_rate: Optional[str] = None


class OpenFDRRequest(BaseModel):
    client_id: str
    deposit_amount: str = Field(..., description="Decimal amount as string")
    term_months: int
    interest_rate: Optional[str] = None


class CloseSavingsRequest(BaseModel):
    amount_to_return: str = Field(..., description="Principal paid back, decimal as string")
    interest: str = Field("0", description="Interest paid on top, decimal as string")


# Transaction schemas
class RecordTransactionRequest(BaseModel):
    transaction_type: str = Field(..., description="DISBURSEMENT, COLLECTION, SAVINGS, WITHDRAWAL or OPEX")
    amount: str = Field(..., description="Decimal amount as string")
    description: str = ""
    client_id: Optional[str] = None
    product_id: Optional[str] = None
    interest_part: str = "0"
    principal_part: str = "0"


# Admin schemas
class CreateBranchRequest(BaseModel):
    name: str
    address: str = ""
    initial_capital: str = Field(..., description="Decimal amount as string")
    default_loan_rate: str
    default_dps_rate: str
    default_fdr_rate: str


class CreateUserRequest(BaseModel):
    username: str
    password: str
    name: str
    role: str = Field(..., description="ADMIN or MANAGER")
    branch_id: str


class CommandResponse(BaseModel):
    message: str
    ids: Dict[str, str]
    records: Dict[str, Dict[str, Any]]
    persisted: bool

    @classmethod
    def from_result(cls, result: CommandResult) -> 'CommandResponse':
        return cls(
            message=result.message,
            ids=result.ids,
            records={kind: record_to_dict(record) for kind, record in result.records.items()},
            persisted=result.persisted
        )
