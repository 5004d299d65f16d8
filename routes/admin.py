from fastapi import APIRouter, Depends
import logging

from models.raffle import AddressUpdate, MinimumPlayersUpdate
from models.wallet import WalletFund
from routes.auth import get_current_caller
from routes.raffle import get_raffle_service, raffle_http_error
from services.errors import RaffleError
from services.raffle_service import RaffleService

router = APIRouter()
logger = logging.getLogger(__name__)

# The raffle checks the caller itself, so a non-admin gets AddressNotAuthorized (403)


@router.post("/pause")
async def pause_lottery(caller: str = Depends(get_current_caller), raffle: RaffleService = Depends(get_raffle_service)):
    try:
        await raffle.pause_lottery(caller)
    except RaffleError as e:
        raise raffle_http_error(e)
    return {"message": "Raffle paused", "state": raffle.get_raffle_state().name}

@router.post("/unpause")
async def unpause_lottery(caller: str = Depends(get_current_caller), raffle: RaffleService = Depends(get_raffle_service)):
    try:
        await raffle.unpause_lottery(caller)
    except RaffleError as e:
        raise raffle_http_error(e)
    return {"message": "Raffle unpaused", "state": raffle.get_raffle_state().name}

@router.post("/price-feed")
async def update_price_feed_address(
        update: AddressUpdate,
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    try:
        await raffle.update_price_feed_address(caller, update.address)
    except RaffleError as e:
        raise raffle_http_error(e)
    logger.info(f"Price feed moved to {raffle.get_price_feed_address()} by {caller}")
    return {"message": "Price feed updated", "address": raffle.get_price_feed_address()}

@router.post("/minimum-players")
async def set_minimum_players(
        update: MinimumPlayersUpdate,
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    try:
        await raffle.set_minimum_players(caller, update.value)
    except RaffleError as e:
        raise raffle_http_error(e)
    return {"message": "Minimum players updated", "minimum_players": raffle.get_minimum_players()}

@router.post("/fund")
async def fund_wallet(
        fund: WalletFund,
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    """Credit native tokens to an address (development faucet)"""
    try:
        await raffle.fund_wallet(caller, fund.address, fund.amount)
    except RaffleError as e:
        raise raffle_http_error(e)
    return {"address": fund.address, "balance": await raffle.wallet_service.get_balance(fund.address)}
