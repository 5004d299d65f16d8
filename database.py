from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import IndexModel
from datetime import datetime
from typing import List, Optional
import logging
import pytz

from config import MONGODB_URL, DATABASE_NAME
from models.raffle import PlayerEntry, RaffleEvent, RaffleSnapshot, Settlement
from models.wallet import Transfer

logger = logging.getLogger(__name__)

# MongoDB connection
client = AsyncIOMotorClient(MONGODB_URL)
database = client[DATABASE_NAME]

# Collections
raffle_state_collection = database.raffle_state
raffle_events_collection = database.raffle_events
settlements_collection = database.settlements
player_entries_collection = database.player_entries
transfers_collection = database.transfers
accounts_collection = database.accounts

INT64_MAX = 2 ** 63 - 1


def bson_safe(value):
    """Native amounts overflow BSON's int64, store those as decimal strings"""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value if -INT64_MAX - 1 <= value <= INT64_MAX else str(value)
    if isinstance(value, dict):
        return {k: bson_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [bson_safe(v) for v in value]
    return value


async def init_db():
    """Initialize database with indexes"""

    await accounts_collection.create_indexes([
        IndexModel("address", unique=True),
    ])

    await raffle_events_collection.create_indexes([
        IndexModel("name"),
        IndexModel("timestamp"),
    ])

    await settlements_collection.create_indexes([
        IndexModel("round_id", unique=True),
        IndexModel("winner"),
    ])

    await player_entries_collection.create_indexes([
        IndexModel("player"),
        IndexModel([("player", 1), ("round_id", 1)]),
    ])

    await transfers_collection.create_indexes([
        IndexModel("address"),
        IndexModel([("address", 1), ("date", -1)]),
    ])

    logger.info("Database initialized successfully")


class MongoRaffleStore:
    """Persists the raffle snapshot and its append-only records"""

    STATE_ID = "raffle"

    def __init__(self, db=None):
        db = db if db is not None else database
        self.state_collection = db.raffle_state
        self.events_collection = db.raffle_events
        self.settlements_collection = db.settlements
        self.transfers_collection = db.transfers
        self.entries_collection = db.player_entries

    async def load(self) -> Optional[RaffleSnapshot]:
        doc = await self.state_collection.find_one({"_id": self.STATE_ID})
        if not doc:
            return None
        return RaffleSnapshot.model_validate_json(doc["data"])

    async def commit(
        self,
        snapshot: RaffleSnapshot,
        events: List[RaffleEvent] = (),
        transfers: List[Transfer] = (),
        settlements: List[Settlement] = (),
        entries: List[PlayerEntry] = (),
    ):
        if events:
            await self.events_collection.insert_many([bson_safe(e.model_dump()) for e in events])
        if transfers:
            await self.transfers_collection.insert_many(
                [{**bson_safe(t.model_dump(mode="json")), "date": t.date} for t in transfers]
            )
        if settlements:
            await self.settlements_collection.insert_many([bson_safe(s.model_dump(mode="json")) for s in settlements])
        if entries:
            await self.entries_collection.insert_many([bson_safe(e.model_dump()) for e in entries])

        # Snapshot last: it is the authoritative state
        await self.state_collection.replace_one(
            {"_id": self.STATE_ID},
            {
                "_id": self.STATE_ID,
                "data": snapshot.model_dump_json(),
                "state": snapshot.state.name,
                "round_id": snapshot.round_id,
                "updated_at": datetime.now(pytz.UTC),
            },
            upsert=True,
        )

    async def recent_entries(self, limit: int) -> List[PlayerEntry]:
        """Latest entries of every player, oldest first"""
        cursor = self.entries_collection.find({}, {"_id": 0}).sort("_id", -1).limit(limit)
        return [PlayerEntry(**doc) for doc in reversed(await cursor.to_list(length=limit))]

    async def recent_settlements(self, limit: int) -> List[Settlement]:
        cursor = self.settlements_collection.find({}, {"_id": 0}).sort("round_id", -1).limit(limit)
        return [Settlement(**doc) for doc in reversed(await cursor.to_list(length=limit))]

    async def player_history(self, address: str, limit: int) -> List[PlayerEntry]:
        cursor = self.entries_collection.find({"player": address}, {"_id": 0}).sort("_id", -1).limit(limit)
        return [PlayerEntry(**doc) for doc in reversed(await cursor.to_list(length=limit))]


async def get_database():
    return database
