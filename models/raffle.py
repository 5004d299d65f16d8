from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from models.wallet import Payout

ZERO_ADDRESS = "0x" + "0" * 40
MAX_BPS = 10_000


def normalize_address(address: str) -> str:
    """Addresses compare case-insensitively, like checksummed hex addresses"""
    return (address or "").strip().lower()


class RaffleState(int, Enum):
    OPEN = 0
    CALCULATING = 1
    PAUSED = 2


class RaffleConfig(BaseModel):
    # USD target scaled to 18 decimals, 10 * 10**18 is $10
    entrance_fee_usd: int = Field(gt=0)
    interval: int = Field(ge=0)
    min_players: int = Field(default=1, ge=1)
    request_confirmations: int = Field(default=3, ge=0)
    num_words: int = Field(default=1, ge=1)
    callback_gas_limit: int = 500_000
    gas_lane: str = ""
    price_feed_address: str
    admin_address: str
    developer_address: str
    admin_share_bps: int = Field(default=100, ge=0)
    developer_share_bps: int = Field(default=100, ge=0)
    coordinator_address: str

    @field_validator("price_feed_address", "admin_address", "developer_address", "coordinator_address")
    @classmethod
    def validate_address(cls, v):
        v = normalize_address(v)
        if not v or v == ZERO_ADDRESS:
            raise ValueError("Address must not be empty or the zero address")
        return v

    @model_validator(mode="after")
    def validate_shares(self):
        if self.admin_share_bps + self.developer_share_bps >= MAX_BPS:
            raise ValueError("Admin and developer shares must leave a remainder for the winner")
        return self


class PlayerEntry(BaseModel):
    player: str
    round_id: int
    amount: int
    timestamp: int


class Settlement(BaseModel):
    round_id: int
    request_id: int
    winner: str
    random_word: int
    total: int
    payouts: List[Payout] = []
    timestamp: int


class RaffleEvent(BaseModel):
    name: str
    args: Dict[str, Any] = {}
    timestamp: datetime


class RaffleSnapshot(BaseModel):
    """Everything needed to resume the raffle in a new process.

    Entry and settlement history lives in its own collections so the
    snapshot stays the same size however many rounds have been played.
    """
    state: RaffleState
    players: List[str] = []
    last_timestamp: int
    entrance_fee: int
    pending_request_id: Optional[int] = None
    balance: int = 0
    round_id: int = 1
    recent_winner: Optional[str] = None
    price_feed_address: str
    min_players: int
    last_payouts: List[Payout] = []
    wallet_balances: Dict[str, int] = {}


# Request / response bodies

class EnterRequest(BaseModel):
    amount: int = Field(gt=0)


class FulfillRequest(BaseModel):
    request_id: int
    random_words: List[int]


class AddressUpdate(BaseModel):
    address: str


class MinimumPlayersUpdate(BaseModel):
    value: int


class UpkeepResponse(BaseModel):
    upkeep_needed: bool


class UpkeepPerformedResponse(BaseModel):
    request_id: int


class RaffleStatusResponse(BaseModel):
    state: RaffleState
    state_name: str
    round_id: int
    entrance_fee: int
    number_of_players: int
    balance: int
    recent_winner: Optional[str] = None
    last_timestamp: int
    interval: int
    minimum_players: int
    pending_request_id: Optional[int] = None
    price_feed_address: str
    upkeep_needed: bool
