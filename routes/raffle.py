from fastapi import APIRouter, HTTPException, Depends, Request, status
from typing import List
import logging

from models.raffle import (
    EnterRequest,
    PlayerEntry,
    RaffleEvent,
    RaffleStatusResponse,
    Settlement,
    UpkeepPerformedResponse,
    UpkeepResponse,
)
from routes.auth import get_current_caller
from services.errors import RaffleError
from services.raffle_service import RaffleService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_raffle_service(request: Request) -> RaffleService:
    return request.app.state.raffle_service


def raffle_http_error(e: RaffleError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail={"error": e.code, "message": str(e), **e.details})


@router.get("/status", response_model=RaffleStatusResponse)
async def get_status(raffle: RaffleService = Depends(get_raffle_service)):
    """Everything the player and admin dashboards show, in one call"""
    return raffle.get_status()

@router.post("/enter", status_code=status.HTTP_201_CREATED)
async def enter_raffle(
        entry: EnterRequest,
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    try:
        await raffle.enter(caller, entry.amount)
    except RaffleError as e:
        raise raffle_http_error(e)
    return {"message": "Entered", "player": caller, "number_of_players": raffle.get_number_of_players()}

@router.get("/check-upkeep", response_model=UpkeepResponse)
async def check_upkeep(raffle: RaffleService = Depends(get_raffle_service)):
    return UpkeepResponse(upkeep_needed=raffle.check_upkeep())

@router.post("/perform-upkeep", response_model=UpkeepPerformedResponse)
async def perform_upkeep(
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    """Close the round and request randomness (any caller)"""
    try:
        request_id = await raffle.perform_upkeep(caller)
    except RaffleError as e:
        raise raffle_http_error(e)
    return UpkeepPerformedResponse(request_id=request_id)

@router.get("/state")
async def get_raffle_state(raffle: RaffleService = Depends(get_raffle_service)):
    state = raffle.get_raffle_state()
    return {"state": state.value, "name": state.name}

@router.get("/entrance-fee")
async def get_entrance_fee(raffle: RaffleService = Depends(get_raffle_service)):
    return {"entrance_fee": raffle.get_entrance_fee()}

@router.get("/players/count")
async def get_number_of_players(raffle: RaffleService = Depends(get_raffle_service)):
    return {"number_of_players": raffle.get_number_of_players()}

@router.get("/players/{index}")
async def get_player(index: int, raffle: RaffleService = Depends(get_raffle_service)):
    try:
        return {"index": index, "player": raffle.get_player(index)}
    except IndexError:
        raise HTTPException(status_code=404, detail="Player not found")

@router.get("/recent-winner")
async def get_recent_winner(raffle: RaffleService = Depends(get_raffle_service)):
    return {"recent_winner": raffle.get_recent_winner()}

@router.get("/last-timestamp")
async def get_last_timestamp(raffle: RaffleService = Depends(get_raffle_service)):
    return {"last_timestamp": raffle.get_last_timestamp()}

@router.get("/interval")
async def get_interval(raffle: RaffleService = Depends(get_raffle_service)):
    return {"interval": raffle.get_interval()}

@router.get("/history/{address}", response_model=List[PlayerEntry])
async def get_player_history(address: str, limit: int = 1000, raffle: RaffleService = Depends(get_raffle_service)):
    """Entries an address has made, oldest first"""
    return await raffle.load_player_history(address, limit)

@router.get("/payees")
async def get_payees(raffle: RaffleService = Depends(get_raffle_service)):
    """Recipients and amounts of the last payout"""
    return {"payees": raffle.get_payees(), "shares": raffle.get_shares()}

@router.get("/settlements", response_model=List[Settlement])
async def get_settlements(limit: int = 50, raffle: RaffleService = Depends(get_raffle_service)):
    return raffle.get_settlements(limit)

@router.get("/events", response_model=List[RaffleEvent])
async def get_events(name: str = None, limit: int = 50, raffle: RaffleService = Depends(get_raffle_service)):
    return raffle.event_service.recent(limit=limit, name=name)
