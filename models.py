from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from datetime import datetime
from decimal import Decimal


class TransferStatus(str, Enum):
    transferred = "transferred"
    failed = "failed"


class Account(BaseModel):
    # Records are replaced on commit, never edited in place
    model_config = ConfigDict(frozen=True)

    accountId: str = Field(
        ...,
        min_length=1,
        description="Unique account identifier"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Current account balance"
    )


class AccountCreateRequest(BaseModel):
    accountId: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Account identifier"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        max_digits=14,
        decimal_places=2,
        description="Opening balance"
    )

    @field_validator('accountId')
    @classmethod
    def validate_account_id(cls, v):
        if not v.strip():
            raise ValueError('Account ID must not be blank')
        return v


class TransferRequest(BaseModel):
    senderAccountId: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Account to debit"
    )
    receiverAccountId: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Account to credit"
    )
    transferAmount: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Amount to move, strictly positive"
    )

    @field_validator('senderAccountId', 'receiverAccountId')
    @classmethod
    def validate_account_ids(cls, v):
        if not v.strip():
            raise ValueError('Account ID must not be blank')
        return v

    @model_validator(mode='after')
    def validate_distinct_accounts(self):
        if self.senderAccountId == self.receiverAccountId:
            raise ValueError('Sender and receiver accounts must differ')
        return self


class TransferResponse(BaseModel):
    status: TransferStatus = Field(..., description="Transfer outcome")
    message: str = Field(..., description="Human-readable outcome")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of accounts in system")
