"""
Raffle Configuration
All configurable parameters for the raffle settlement service
"""

import os
from dotenv import load_dotenv

from models.raffle import RaffleConfig

load_dotenv()

# MongoDB
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "raffle")

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "your-secret-key-here")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))  # 7 days

# Entrance fee target, whole USD
ENTRANCE_FEE_USD = int(os.getenv("ENTRANCE_FEE_USD", "10"))

# Round settings
KEEPERS_UPDATE_INTERVAL = int(os.getenv("KEEPERS_UPDATE_INTERVAL", "86400"))  # 1 day
MINIMUM_PLAYERS = int(os.getenv("MINIMUM_PLAYERS", "1"))

# Randomness request parameters
REQUEST_CONFIRMATIONS = int(os.getenv("REQUEST_CONFIRMATIONS", "3"))
NUM_WORDS = int(os.getenv("NUM_WORDS", "1"))
CALLBACK_GAS_LIMIT = int(os.getenv("CALLBACK_GAS_LIMIT", "500000"))
GAS_LANE = os.getenv("GAS_LANE", "0x474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c")
COORDINATOR_ADDRESS = os.getenv("COORDINATOR_ADDRESS", "0x000000000000000000000000000000000000c0de")

# Secrets the admin and the coordinator log in with; unset disables that login
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
COORDINATOR_API_KEY = os.getenv("COORDINATOR_API_KEY", "")

# Price feed. Without PRICE_FEED_URL a static feed answering STATIC_PRICE_ANSWER is used
PRICE_FEED_ADDRESS = os.getenv("PRICE_FEED_ADDRESS", "0x000000000000000000000000000000000000feed")
PRICE_FEED_URL = os.getenv("PRICE_FEED_URL", "")
STATIC_PRICE_ANSWER = int(os.getenv("STATIC_PRICE_ANSWER", "150000000"))  # $1.50
PRICE_FEED_DECIMALS = int(os.getenv("PRICE_FEED_DECIMALS", "8"))

# Payout
ADMIN_ADDRESS = os.getenv("ADMIN_ADDRESS", "0x00000000000000000000000000000000000000ad")
DEVELOPER_ADDRESS = os.getenv("DEVELOPER_ADDRESS", "0x00000000000000000000000000000000000000de")
ADMIN_SHARE_BPS = int(os.getenv("ADMIN_SHARE_BPS", "100"))          # 1%
DEVELOPER_SHARE_BPS = int(os.getenv("DEVELOPER_SHARE_BPS", "100"))  # 1%

# Keeper
KEEPER_POLL_SECONDS = int(os.getenv("KEEPER_POLL_SECONDS", "60"))
AUTO_FULFILL = os.getenv("AUTO_FULFILL", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def load_raffle_config() -> RaffleConfig:
    """Build the validated raffle configuration from the environment"""
    return RaffleConfig(
        entrance_fee_usd=ENTRANCE_FEE_USD * 10 ** 18,
        interval=KEEPERS_UPDATE_INTERVAL,
        min_players=MINIMUM_PLAYERS,
        request_confirmations=REQUEST_CONFIRMATIONS,
        num_words=NUM_WORDS,
        callback_gas_limit=CALLBACK_GAS_LIMIT,
        gas_lane=GAS_LANE,
        price_feed_address=PRICE_FEED_ADDRESS,
        admin_address=ADMIN_ADDRESS,
        developer_address=DEVELOPER_ADDRESS,
        admin_share_bps=ADMIN_SHARE_BPS,
        developer_share_bps=DEVELOPER_SHARE_BPS,
        coordinator_address=COORDINATOR_ADDRESS,
    )
