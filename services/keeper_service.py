import asyncio
import logging

from services.errors import RaffleError, UpkeepNotNeeded
from services.raffle_service import RaffleService

logger = logging.getLogger(__name__)


class KeeperService:
    """Automation that closes rounds once upkeep is needed.

    With ``auto_fulfill`` the local coordinator answers the randomness request
    right away, which is how development deployments settle rounds.
    """

    def __init__(self, raffle_service: RaffleService, poll_seconds: int = 60, auto_fulfill: bool = False):
        self.raffle_service = raffle_service
        self.poll_seconds = poll_seconds
        self.auto_fulfill = auto_fulfill

    async def start_upkeep_scheduler(self):
        """Start the background task that checks for upkeep"""
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in upkeep scheduler: {e}")
            await asyncio.sleep(self.poll_seconds)

    async def run_once(self):
        """One keeper tick; returns the request id when upkeep was performed"""
        if not self.raffle_service.check_upkeep():
            logger.debug("No upkeep needed")
            return None

        try:
            request_id = await self.raffle_service.perform_upkeep("keeper")
        except UpkeepNotNeeded:
            # Another caller closed the round first
            return None
        logger.info(f"Performed upkeep with request id {request_id}")

        if self.auto_fulfill:
            try:
                await self.raffle_service.coordinator.fulfill_random_words(request_id)
                logger.info(f"The winner is: {self.raffle_service.get_recent_winner()}")
            except RaffleError as e:
                logger.error(f"Mocked fulfillment of request {request_id} failed: {e.code}")
        return request_id
