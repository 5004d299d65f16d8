from fastapi import APIRouter, HTTPException, Request, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta
from typing import Dict, Set
import logging
import pytz

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, ADMIN_ADDRESS
from models.raffle import ZERO_ADDRESS, normalize_address
from models.user import AccountCreate, AccountLogin, AccountResponse, Role, TokenResponse
from database import accounts_collection

router = APIRouter()
security = HTTPBearer()
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)

def role_for(address: str) -> Role:
    return Role.ADMIN if normalize_address(address) == normalize_address(ADMIN_ADDRESS) else Role.PLAYER

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.UTC) + expires_delta
    else:
        expire = datetime.now(pytz.UTC) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt

async def get_current_caller(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Address the request acts as, taken from the bearer token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
        address: str = payload.get("sub")
        if not address:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    return normalize_address(address)

def token_response(account: dict) -> TokenResponse:
    access_token = create_access_token(
        data={"sub": account["address"]},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return TokenResponse(
        access_token=access_token,
        account=AccountResponse(
            address=account["address"],
            role=role_for(account["address"]),
            created_at=account["created_at"],
        ),
    )

def reserved_addresses(request: Request) -> Set[str]:
    """Privileged identities; their accounts only come from seed_privileged_accounts"""
    raffle_config = request.app.state.raffle_service.config
    return {raffle_config.admin_address, raffle_config.coordinator_address}

async def seed_privileged_accounts(credentials: Dict[str, str]):
    """Create or reset the accounts of privileged addresses from configured secrets.

    An address without a secret gets its account deactivated, so nobody can
    log in as it.
    """
    for address, secret in credentials.items():
        address = normalize_address(address)
        if not secret:
            await accounts_collection.update_one({"address": address}, {"$set": {"is_active": False}})
            logger.warning(f"No credentials configured for {address}; login is disabled")
            continue

        await accounts_collection.update_one(
            {"address": address},
            {
                "$set": {"password": get_password_hash(secret), "is_active": True},
                "$setOnInsert": {"created_at": datetime.now(pytz.UTC)},
            },
            upsert=True,
        )
        logger.info(f"Credentials seeded for {address}")

@router.post("/register", response_model=TokenResponse)
async def register(account_data: AccountCreate, request: Request):
    address = normalize_address(account_data.address)
    if not address or address == ZERO_ADDRESS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid address")

    if address in reserved_addresses(request):
        logger.warning(f"Refused registration of reserved address {address}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Address is reserved"
        )

    existing = await accounts_collection.find_one({"address": address})
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Address already registered"
        )

    account_doc = {
        "address": address,
        "password": get_password_hash(account_data.password),
        "created_at": datetime.now(pytz.UTC),
        "is_active": True
    }
    await accounts_collection.insert_one(account_doc)

    return token_response(account_doc)

@router.post("/login", response_model=TokenResponse)
async def login(account_data: AccountLogin):
    account = await accounts_collection.find_one({"address": normalize_address(account_data.address)})
    if not account or not verify_password(account_data.password, account["password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect address or password"
        )

    if not account.get("is_active", True):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is deactivated"
        )

    return token_response(account)

@router.get("/me", response_model=AccountResponse)
async def get_me(caller: str = Depends(get_current_caller)):
    account = await accounts_collection.find_one({"address": caller})
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return AccountResponse(address=caller, role=role_for(caller), created_at=account["created_at"])
