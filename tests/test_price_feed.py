import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from conftest import ENTRANCE_FEE, PRICE, PRICE_FEED
from services.errors import InvalidPriceFeed
from services.price_feed_service import FeeOracle, HttpPriceFeed, PriceFeedRegistry, StaticPriceFeed

TEN_DOLLARS = 10 * 10 ** 18


@pytest.fixture
def oracle(registry):
    return FeeOracle(registry, TEN_DOLLARS)


async def test_ten_dollars_at_one_fifty(oracle):
    assert await oracle.current_entrance_fee(PRICE_FEED) == ENTRANCE_FEE


async def test_fee_rounds_down(registry):
    registry.register("0x01", StaticPriceFeed(3, decimals=0))
    oracle = FeeOracle(registry, 10)
    assert await oracle.current_entrance_fee("0x01") == 3


async def test_doubling_price_halves_fee(oracle, price_feed):
    before = await oracle.current_entrance_fee(PRICE_FEED)
    price_feed.set_latest_answer(PRICE * 2)
    after = await oracle.current_entrance_fee(PRICE_FEED)
    assert abs(after * 2 - before) <= 1


@pytest.mark.parametrize("answer", [0, -1])
async def test_non_positive_price_is_rejected(oracle, price_feed, answer):
    price_feed.set_latest_answer(answer)
    with pytest.raises(InvalidPriceFeed):
        await oracle.current_entrance_fee(PRICE_FEED)


async def test_price_too_high_to_price_fee(registry):
    registry.register("0x02", StaticPriceFeed(10 ** 30, decimals=0))
    with pytest.raises(InvalidPriceFeed):
        await FeeOracle(registry, 1).current_entrance_fee("0x02")


async def test_unknown_feed_address(oracle):
    with pytest.raises(InvalidPriceFeed):
        await oracle.current_entrance_fee("0x" + "99" * 20)


def test_registry_lookup_ignores_case():
    feed = StaticPriceFeed(PRICE)
    registry = PriceFeedRegistry()
    registry.register("0xABCDEF", feed)
    assert registry.resolve("0xabcdef") is feed


def test_registry_factory_builds_unregistered_feeds():
    registry = PriceFeedRegistry(factory=lambda address: HttpPriceFeed(f"http://feeds.local/{address}"))
    feed = registry.resolve("0xAA")
    assert isinstance(feed, HttpPriceFeed)
    assert feed.url == "http://feeds.local/0xaa"


@pytest.fixture
async def feed_server():
    responses = {"status": 200, "body": {"answer": PRICE, "decimals": 8}}

    async def latest(request):
        return web.json_response(responses["body"], status=responses["status"])

    app = web.Application()
    app.router.add_get("/feeds/{address}", latest)
    server = TestServer(app)
    await server.start_server()
    yield server, responses
    await server.close()


async def test_http_feed_reads_answer(feed_server):
    server, _ = feed_server
    feed = HttpPriceFeed(str(server.make_url("/feeds/0xfe")))
    assert await feed.latest_round_data() == (PRICE, 8)


async def test_http_feed_error_status(feed_server):
    server, responses = feed_server
    responses["status"] = 503
    with pytest.raises(InvalidPriceFeed):
        await HttpPriceFeed(str(server.make_url("/feeds/0xfe"))).latest_round_data()


async def test_http_feed_malformed_body(feed_server):
    server, responses = feed_server
    responses["body"] = {"price": 1}
    with pytest.raises(InvalidPriceFeed):
        await HttpPriceFeed(str(server.make_url("/feeds/0xfe"))).latest_round_data()


async def test_http_feed_unreachable():
    feed = HttpPriceFeed("http://127.0.0.1:1/feeds/0xfe", timeout=2)
    with pytest.raises(InvalidPriceFeed):
        await feed.latest_round_data()
