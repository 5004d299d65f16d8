import pytest

from models.raffle import RaffleConfig
from services.price_feed_service import FeeOracle, PriceFeedRegistry, StaticPriceFeed
from services.raffle_service import RaffleService
from services.randomness_service import RandomnessCoordinator

ADMIN = "0x" + "ad" * 20
DEVELOPER = "0x" + "de" * 20
COORDINATOR = "0x" + "c0" * 20
PRICE_FEED = "0x" + "fe" * 20

# $1.50 with 8 decimals, so $10 buys 6.666... native tokens
PRICE = 150_000_000
ENTRANCE_FEE = 6666666666666666666
INTERVAL = 86400
START_TIME = 1_700_000_000
ONE_TOKEN = 10 ** 18


def player(n: int) -> str:
    return "0x" + f"{n:040x}"


class FakeClock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


class RecordingStore:
    def __init__(self, fail: bool = False):
        self.commits = []
        self.fail = fail

    async def commit(self, snapshot, events=(), transfers=(), settlements=(), entries=()):
        if self.fail:
            raise ConnectionError("database unavailable")
        self.commits.append((snapshot, list(events), list(transfers), list(settlements), list(entries)))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def price_feed():
    return StaticPriceFeed(PRICE, decimals=8)


@pytest.fixture
def registry(price_feed):
    registry = PriceFeedRegistry()
    registry.register(PRICE_FEED, price_feed)
    return registry


@pytest.fixture
def raffle_config():
    return RaffleConfig(
        entrance_fee_usd=10 * 10 ** 18,
        interval=INTERVAL,
        min_players=1,
        request_confirmations=3,
        num_words=1,
        price_feed_address=PRICE_FEED,
        admin_address=ADMIN,
        developer_address=DEVELOPER,
        admin_share_bps=100,
        developer_share_bps=100,
        coordinator_address=COORDINATOR,
    )


@pytest.fixture
def coordinator():
    return RandomnessCoordinator(COORDINATOR)


@pytest.fixture
def make_raffle(raffle_config, registry, coordinator, clock):
    def make(store=None, config=None, **kwargs) -> RaffleService:
        config = config or raffle_config
        return RaffleService(
            config=config,
            fee_oracle=FeeOracle(registry, config.entrance_fee_usd),
            coordinator=coordinator,
            store=store,
            clock=clock,
            **kwargs,
        )
    return make


@pytest.fixture
async def raffle(make_raffle):
    service = make_raffle()
    await service.initialize()
    return service


@pytest.fixture
def enter_players(raffle):
    """Fund each player with 10 tokens and enter them once at the current fee"""
    async def enter(count: int, start: int = 1):
        players = [player(n) for n in range(start, start + count)]
        for address in players:
            await raffle.wallet_service.credit_wallet(address, 10 * ONE_TOKEN, "Test funding")
            await raffle.enter(address, raffle.get_entrance_fee())
        return players
    return enter
