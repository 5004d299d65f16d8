from pydantic import BaseModel, Field
from typing import List
from datetime import datetime
from enum import Enum

class TransferType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"

class TransferStatus(str, Enum):
    COMPLETED = "completed"
    REVERTED = "reverted"

class PayoutRole(str, Enum):
    WINNER = "winner"
    ADMIN = "admin"
    DEVELOPER = "developer"

class Transfer(BaseModel):
    address: str
    type: TransferType
    amount: int
    description: str
    status: TransferStatus = TransferStatus.COMPLETED
    date: datetime

class Payout(BaseModel):
    recipient: str
    role: PayoutRole
    amount: int

class WalletFund(BaseModel):
    address: str
    amount: int = Field(gt=0)

class WalletResponse(BaseModel):
    address: str
    balance: int

class WalletDetails(BaseModel):
    address: str
    balance: int
    transfers: List[Transfer]
