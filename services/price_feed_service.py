"""
Price feeds and entrance fee pricing

The entrance fee is a fixed USD amount repriced into the native token from a
USD price feed answering ``(answer, decimals)``, the shape of a Chainlink
aggregator's latest round.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Tuple

import aiohttp

from models.raffle import normalize_address
from services.errors import InvalidPriceFeed

logger = logging.getLogger(__name__)


class PriceFeed:
    async def latest_round_data(self) -> Tuple[int, int]:
        raise NotImplementedError


class StaticPriceFeed(PriceFeed):
    """In-process feed whose answer is set by hand (local deployments and tests)"""

    def __init__(self, answer: int, decimals: int = 8):
        self.answer = answer
        self.decimals = decimals

    def set_latest_answer(self, answer: int):
        self.answer = answer

    async def latest_round_data(self) -> Tuple[int, int]:
        return self.answer, self.decimals


class HttpPriceFeed(PriceFeed):
    """Feed served over HTTP as JSON: {"answer": 150000000, "decimals": 8}"""

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    async def latest_round_data(self) -> Tuple[int, int]:
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.get(self.url, headers={"Accept": "application/json"}) as response:
                    if response.status != 200:
                        raise InvalidPriceFeed(f"Price feed answered HTTP {response.status}", url=self.url)
                    data = await response.json()
            return int(data["answer"]), int(data["decimals"])
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise InvalidPriceFeed(f"Price feed unreachable: {e}", url=self.url) from e
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPriceFeed(f"Malformed price feed response: {e}", url=self.url) from e


class PriceFeedRegistry:
    """Resolves a feed address to a feed.

    Feeds registered explicitly win; otherwise ``factory`` builds one for the
    address (e.g. an HttpPriceFeed keyed by address).
    """

    def __init__(self, factory: Optional[Callable[[str], PriceFeed]] = None):
        self.feeds: Dict[str, PriceFeed] = {}
        self.factory = factory

    def register(self, address: str, feed: PriceFeed):
        self.feeds[normalize_address(address)] = feed

    def resolve(self, address: str) -> PriceFeed:
        address = normalize_address(address)
        feed = self.feeds.get(address)
        if feed is None and self.factory is not None:
            feed = self.factory(address)
        if feed is None:
            raise InvalidPriceFeed(f"No price feed at {address}", address=address)
        return feed


class FeeOracle:
    def __init__(self, registry: PriceFeedRegistry, entrance_fee_usd: int):
        self.registry = registry
        self.entrance_fee_usd = entrance_fee_usd

    async def get_price(self, address: str) -> Tuple[int, int]:
        """Latest (answer, decimals) from the feed, rejecting non-positive answers"""
        answer, decimals = await self.registry.resolve(address).latest_round_data()
        if answer <= 0:
            logger.warning(f"Price feed {address} reported non-positive price {answer}")
            raise InvalidPriceFeed(f"Price feed reported {answer}", address=address, answer=answer)
        if decimals < 0:
            raise InvalidPriceFeed(f"Price feed reported {decimals} decimals", address=address)
        return answer, decimals

    async def current_entrance_fee(self, address: str) -> int:
        """Native amount worth ``entrance_fee_usd``, rounded down"""
        answer, decimals = await self.get_price(address)
        fee = self.entrance_fee_usd * 10 ** decimals // answer
        if fee <= 0:
            raise InvalidPriceFeed(f"Price {answer} prices the entrance fee at zero", address=address)
        return fee
