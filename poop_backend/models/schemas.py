from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional


class UserCreate(BaseModel):
    address: str
    username: str
    email: Optional[EmailStr] = None


class PoopCreate(BaseModel):
    senderAddress: str = Field(..., description="Wallet address of the sender")
    recipientEmail: str = Field(..., description="Email of the recipient")
    amount: Decimal = Field(..., description="Amount in USDC, at most 6 decimals")


class PoopVerify(BaseModel):
    userId: str
    poopId: str


class PoopClaim(BaseModel):
    poopId: str
    walletAddress: str


class SelfProof(BaseModel):
    a: List[str]
    b: List[List[str]]
    c: List[str]


class SelfVerifyRequest(BaseModel):
    attestationId: int
    proof: SelfProof
    publicSignals: List[str]
    userContextData: str


class WebhookSummary(BaseModel):
    success: bool
    processed: int = 0
    total: int = 0
    error: Optional[str] = None
