from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

class Role(str, Enum):
    ADMIN = "admin"
    PLAYER = "player"

class AccountCreate(BaseModel):
    address: str
    password: str = Field(min_length=8, max_length=72)

class AccountLogin(BaseModel):
    address: str
    password: str

class AccountResponse(BaseModel):
    address: str
    role: Role
    created_at: datetime

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse
