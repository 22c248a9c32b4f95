"""
Data models for the DirectCryptoPay SDK.

Wire names follow the backend's JSON; Python attribute names are snake_case
and every model accepts either form.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional, List, Literal, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field, model_validator

PaymentStatusValue = Literal["pending", "confirmed", "failed"]


class TokenOption(BaseModel):
    """A payable asset. Native assets carry no contract address."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    name: str = ""
    address: Optional[str] = None
    decimals: int = Field(..., ge=0, le=77)
    is_native: bool = Field(False, alias="isNative")

    @model_validator(mode="after")
    def _check_address(self) -> "TokenOption":
        if self.is_native and self.address:
            raise ValueError(f"Native token {self.symbol} must not have a contract address")
        if not self.is_native and not self.address:
            raise ValueError(f"Token {self.symbol} needs a contract address")
        return self


class ToolMetadataInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    type: str = ""


class ToolMetadata(BaseModel):
    """Description of what is being paid for, as served by the backend."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    amount: str
    currency_id: str
    chain_id: int
    recipient_address: str
    available_tokens: List[TokenOption] = Field(default_factory=list)
    metadata: Optional[ToolMetadataInfo] = None


class RankedToken(TokenOption):
    """A token option with its resolved balance for the connected account."""

    balance: int = 0
    balance_formatted: str = "0"
    has_balance: bool = False


class PaymentIntent(BaseModel):
    """Server-issued authorization for one payment attempt."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    amount: str  # token units, e.g. "49.99"
    currency: str
    chain_id: int = Field(..., alias="chainId")
    token_address: str = Field(..., alias="tokenAddress")
    merchant_address: str = Field(..., alias="merchantAddress")
    expires_at: datetime = Field(..., alias="expiresAt")
    signature: str
    nonce: str = ""

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at


class SubmittedPayment(BaseModel):
    """What the client reports to the backend after broadcasting."""
    model_config = ConfigDict(frozen=True)

    tx_hash: str
    chain_id: int
    amount_wei: int = Field(..., ge=0)
    token_address: str
    recipient: str
    tool_id: str

    def to_request_body(self) -> Dict[str, Any]:
        """
        Build the JSON body for POST /payments.

        Returns:
            Request body with the amount as a decimal string
        """
        return {
            "tx_hash": self.tx_hash,
            "chain_id": self.chain_id,
            "amount_wei": str(self.amount_wei),
            "token_address": self.token_address,
            "recipient": self.recipient,
            "metadata": {"toolId": self.tool_id},
        }


class SubmitPaymentResponse(BaseModel):
    payment_id: str
    tx_hash: str
    status: PaymentStatusValue
    message: str = ""


class PaymentStatusRecord(BaseModel):
    """Backend's view of a submitted payment."""

    payment_id: str
    tx_hash: str
    chain_id: int
    status: PaymentStatusValue
    verified_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "pending"


class GasEstimate(BaseModel):
    """Gas cost of a payment relative to the amount being paid"""
    model_config = ConfigDict(frozen=True)

    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    total_cost_wei: int
    percentage_of_payment: float
    exceeds_threshold: bool


class NativeTransfer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["native"] = "native"
    to: str
    value: int = Field(..., ge=0)
    chain_id: int


class ContractCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["contract_call"] = "contract_call"
    to: str
    data: str
    chain_id: int


TransactionRequest = Annotated[Union[NativeTransfer, ContractCall], Field(discriminator="kind")]


@dataclass(frozen=True)
class WebhookEnvelope:
    """
    A parsed signature header bound to the raw body it authenticates.
    """
    timestamp: int
    signature: str
    raw_body: bytes

    def signed_payload(self) -> bytes:
        return str(self.timestamp).encode("ascii") + b"." + self.raw_body


class TxReceipt(BaseModel):
    """Transaction receipt from the chain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    logs: List[Dict[str, Any]] = Field(default_factory=list)
