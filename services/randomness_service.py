"""
Local randomness coordinator

Stands in for a verifiable-random-function oracle on development
deployments: it hands out request ids immediately and delivers the random
words later, in a separate call, to whichever consumer asked for them.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.raffle import normalize_address
from services.errors import UnknownRequest

logger = logging.getLogger(__name__)


@dataclass
class RandomnessRequest:
    request_id: int
    num_words: int
    confirmations: int
    consumer: Any


class RandomnessCoordinator:
    def __init__(self, address: str, first_request_id: int = 1):
        self.address = normalize_address(address)
        self.next_request_id = first_request_id
        self.pending: Dict[int, RandomnessRequest] = {}

    async def request_random_words(self, num_words: int, confirmations: int, consumer) -> int:
        request_id = self.next_request_id
        self.next_request_id += 1
        self.pending[request_id] = RandomnessRequest(request_id, num_words, confirmations, consumer)
        logger.info(f"Randomness requested: id={request_id} words={num_words} confirmations={confirmations}")
        return request_id

    def track(self, request_id: int, consumer, num_words: int = 1, confirmations: int = 0):
        """Re-register a request issued before a restart"""
        self.pending[request_id] = RandomnessRequest(request_id, num_words, confirmations, consumer)
        self.next_request_id = max(self.next_request_id, request_id + 1)

    async def fulfill_random_words(self, request_id: int, random_words: Optional[List[int]] = None):
        """Deliver words to the consumer; random ones are drawn when none are given"""
        request = self.pending.get(request_id)
        if request is None:
            raise UnknownRequest(f"Coordinator has no pending request {request_id}", request_id=request_id)

        if random_words is None:
            random_words = [secrets.randbits(256) for _ in range(request.num_words)]

        await request.consumer.fulfill_random_words(self.address, request_id, random_words)
        # Only a successful callback consumes the request so a failed one can be retried
        self.forget(request_id)
        logger.info(f"Randomness fulfilled: id={request_id}")

    def forget(self, request_id: int):
        """Drop a request the consumer has settled"""
        self.pending.pop(request_id, None)
