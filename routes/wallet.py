from fastapi import APIRouter, Depends

from models.wallet import WalletResponse, WalletDetails
from routes.auth import get_current_caller
from routes.raffle import get_raffle_service
from services.raffle_service import RaffleService

router = APIRouter()

@router.get("/balance", response_model=WalletResponse)
async def get_wallet_balance(caller: str = Depends(get_current_caller), raffle: RaffleService = Depends(get_raffle_service)):
    """Get current wallet balance"""
    return WalletResponse(address=caller, balance=await raffle.wallet_service.get_balance(caller))

@router.get("/transfers", response_model=WalletDetails)
async def get_wallet_details(caller: str = Depends(get_current_caller), raffle: RaffleService = Depends(get_raffle_service)):
    """Get wallet balance and transfer history"""
    return WalletDetails(
        address=caller,
        balance=await raffle.wallet_service.get_balance(caller),
        transfers=await raffle.wallet_service.get_transfers(caller),
    )
