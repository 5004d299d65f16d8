from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager, suppress
import uvicorn
from datetime import datetime
import asyncio
import logging
import pytz

import config
from routes import auth, raffle, admin, oracle, wallet
from database import init_db, MongoRaffleStore
from services.event_service import EventService
from services.keeper_service import KeeperService
from services.price_feed_service import FeeOracle, HttpPriceFeed, PriceFeedRegistry, StaticPriceFeed
from services.raffle_service import RaffleService
from services.randomness_service import RandomnessCoordinator
from services.wallet_service import WalletService

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_price_feed_registry() -> PriceFeedRegistry:
    """HTTP feeds keyed by address when PRICE_FEED_URL is set, else a static local feed"""
    if config.PRICE_FEED_URL:
        base_url = config.PRICE_FEED_URL.rstrip("/")
        return PriceFeedRegistry(factory=lambda address: HttpPriceFeed(f"{base_url}/{address}"))

    registry = PriceFeedRegistry()
    registry.register(
        config.PRICE_FEED_ADDRESS,
        StaticPriceFeed(config.STATIC_PRICE_ANSWER, decimals=config.PRICE_FEED_DECIMALS),
    )
    return registry


def build_raffle_service(store=None) -> RaffleService:
    raffle_config = config.load_raffle_config()
    return RaffleService(
        config=raffle_config,
        fee_oracle=FeeOracle(build_price_feed_registry(), raffle_config.entrance_fee_usd),
        coordinator=RandomnessCoordinator(raffle_config.coordinator_address),
        wallet_service=WalletService(),
        event_service=EventService(),
        store=store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await init_db()

    store = MongoRaffleStore()
    raffle_service = build_raffle_service(store=store)
    await raffle_service.initialize(await store.load())
    app.state.raffle_service = raffle_service
    await auth.seed_privileged_accounts({
        raffle_service.config.admin_address: config.ADMIN_PASSWORD,
        raffle_service.config.coordinator_address: config.COORDINATOR_API_KEY,
    })

    # Start background tasks
    keeper = KeeperService(raffle_service, config.KEEPER_POLL_SECONDS, auto_fulfill=config.AUTO_FULFILL)
    keeper_task = asyncio.create_task(keeper.start_upkeep_scheduler())
    app.state.keeper_task = keeper_task

    yield

    # Shutdown
    keeper_task.cancel()
    with suppress(asyncio.CancelledError):
        await keeper_task


app = FastAPI(
    title="Raffle Settlement API",
    description="Raffle with oracle-priced entries and verifiable winner selection",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(raffle.router, prefix="/api/v1/raffle", tags=["Raffle"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(oracle.router, prefix="/api/v1/oracle", tags=["Oracle"])
app.include_router(wallet.router, prefix="/api/v1/wallet", tags=["Wallet"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(pytz.UTC)}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
