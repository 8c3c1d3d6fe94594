"""
Request payload variants.

Each request type carries only the fields it needs; the "type" tag selects
the variant and doubles as the request type of the ApprovalRequest.
"""
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from settlement.models.leave import LeaveType
from settlement.models.loan import LoanType
from settlement.utils.datetime_utils import validate_month_key
from settlement.utils.money import floor_money


class LeavePayload(BaseModel):
    type: Literal["leave"] = "leave"
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: Optional[Decimal] = Field(None, gt=0, description="Defaults to the inclusive calendar day count")
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.days is None:
            self.days = Decimal((self.end_date - self.start_date).days + 1)
        return self

    @property
    def magnitude(self) -> Decimal:
        return self.days


class LoanPayload(BaseModel):
    type: Literal["loan"] = "loan"
    loan_type: LoanType = LoanType.INSTALLMENT
    loan_amount: Decimal = Field(..., gt=0)
    total_installments: int = Field(1, ge=1, le=120)
    installment_amount: Optional[Decimal] = Field(
        None, gt=0, description="Regular installment; defaults to loan_amount / total_installments rounded down"
    )
    start_month: str = Field(..., description="YYYY-MM of the first installment")
    reason: Optional[str] = None

    @field_validator("start_month")
    @classmethod
    def _check_month(cls, v: str) -> str:
        return validate_month_key(v)

    @model_validator(mode="after")
    def _check_schedule(self):
        # A monthly advance is repaid in full from the next payroll
        if self.loan_type == LoanType.MONTHLY_ADVANCE:
            self.total_installments = 1
            self.installment_amount = None
        if self.installment_amount is None:
            self.installment_amount = floor_money(self.loan_amount / self.total_installments)
        if self.installment_amount <= 0:
            raise ValueError("loan_amount is too small for total_installments")
        # The final installment takes whatever is left of loan_amount
        if self.installment_amount * (self.total_installments - 1) >= self.loan_amount:
            raise ValueError("installment_amount leaves nothing for the final installment")
        if self.installment_amount > self.loan_amount:
            raise ValueError("installment_amount must not exceed loan_amount")
        return self

    @property
    def magnitude(self) -> Decimal:
        return self.loan_amount


class AllowancePayload(BaseModel):
    type: Literal["allowance"] = "allowance"
    name: str = Field(..., min_length=1, description="Allowance type, e.g. transport")
    amount: Decimal = Field(..., gt=0)
    is_recurring: bool = False
    start_month: str
    end_month: Optional[str] = None

    @field_validator("start_month", "end_month")
    @classmethod
    def _check_month(cls, v: Optional[str]) -> Optional[str]:
        return validate_month_key(v) if v is not None else v

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_month is not None and self.end_month < self.start_month:
            raise ValueError("end_month must not be before start_month")
        return self

    @property
    def magnitude(self) -> Decimal:
        return self.amount


class PenaltyPayload(BaseModel):
    type: Literal["penalty"] = "penalty"
    employee_id: Optional[int] = Field(None, description="Penalised employee; defaults to the requester")
    amount: Decimal = Field(..., gt=0)
    month: str
    reason: str = Field(..., min_length=1)

    @field_validator("month")
    @classmethod
    def _check_month(cls, v: str) -> str:
        return validate_month_key(v)

    @property
    def magnitude(self) -> Decimal:
        return self.amount


class OtherPayload(BaseModel):
    type: Literal["other"] = "other"
    description: str = Field(..., min_length=1)
    details: Optional[Dict[str, Any]] = None

    @property
    def magnitude(self) -> None:
        return None


RequestPayload = Annotated[
    Union[LeavePayload, LoanPayload, AllowancePayload, PenaltyPayload, OtherPayload],
    Field(discriminator="type"),
]

_payload_adapter = TypeAdapter(RequestPayload)


def parse_payload(data: Any):
    """Validate a raw dict (or an already-built variant) into its payload variant."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return _payload_adapter.validate_python(data)


def dump_payload(payload) -> Dict[str, Any]:
    """JSON-safe form for the payload_json column (decimals become strings)."""
    return payload.model_dump(mode="json")
