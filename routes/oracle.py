from fastapi import APIRouter, Depends
import logging

from models.raffle import FulfillRequest
from routes.auth import get_current_caller
from routes.raffle import get_raffle_service, raffle_http_error
from services.errors import RaffleError
from services.raffle_service import RaffleService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/fulfill")
async def fulfill_random_words(
        fulfillment: FulfillRequest,
        caller: str = Depends(get_current_caller),
        raffle: RaffleService = Depends(get_raffle_service)
):
    """Randomness callback; only the coordinator's token is accepted"""
    try:
        winner = await raffle.fulfill_random_words(caller, fulfillment.request_id, fulfillment.random_words)
    except RaffleError as e:
        logger.warning(f"Fulfillment of request {fulfillment.request_id} rejected: {e.code}")
        raise raffle_http_error(e)
    return {"request_id": fulfillment.request_id, "winner": winner}
