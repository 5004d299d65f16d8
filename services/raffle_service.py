"""
Raffle settlement engine

One service instance owns the whole raffle: the entry ledger, the upkeep
trigger, the randomness request/fulfillment protocol and the payout. Every
mutating operation runs as a transaction: under a single lock, against a
snapshot that is restored if anything raises, with its events published only
once it has committed.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, List, Optional

from models.raffle import (
    PlayerEntry,
    RaffleConfig,
    RaffleSnapshot,
    RaffleState,
    RaffleStatusResponse,
    Settlement,
    ZERO_ADDRESS,
    normalize_address,
)
from models.wallet import Payout
from services.errors import (
    AddressNotAuthorized,
    InsufficientEntryFee,
    InvalidAddress,
    InvalidConfiguration,
    InvalidRandomWords,
    NoPlayers,
    OnlyCoordinatorCanFulfill,
    RaffleNotOpen,
    RaffleNotPaused,
    UnknownRequest,
    UpkeepNotNeeded,
)
from services.event_service import EventService
from services.payout_service import PayoutService
from services.price_feed_service import FeeOracle
from services.wallet_service import WalletService

logger = logging.getLogger(__name__)


def unix_now() -> int:
    return int(time.time())


class RaffleService:
    def __init__(
        self,
        config: RaffleConfig,
        fee_oracle: FeeOracle,
        coordinator,
        wallet_service: WalletService = None,
        event_service: EventService = None,
        store=None,
        clock: Callable[[], int] = None,
        history_limit: int = 1000,
    ):
        self.config = config
        self.fee_oracle = fee_oracle
        self.coordinator = coordinator
        self.wallet_service = wallet_service or WalletService(history_limit=history_limit)
        self.event_service = event_service or EventService()
        self.payout_service = PayoutService(
            self.wallet_service,
            admin_address=config.admin_address,
            developer_address=config.developer_address,
            admin_share_bps=config.admin_share_bps,
            developer_share_bps=config.developer_share_bps,
        )
        self.store = store
        self.clock = clock or unix_now
        self._lock = asyncio.Lock()

        self.state = RaffleState.OPEN
        self.players: List[str] = []
        self.last_timestamp = self.clock()
        self.entrance_fee = 0
        self.pending_request_id: Optional[int] = None
        self.balance = 0
        self.round_id = 1
        self.recent_winner: Optional[str] = None
        self.price_feed_address = config.price_feed_address
        self.min_players = config.min_players
        self.last_payouts: List[Payout] = []

        # Recent windows of history; the store keeps everything
        self.history_limit = history_limit
        self.entries: List[PlayerEntry] = []
        self.settlements: List[Settlement] = []
        self._unsaved_entries: List[PlayerEntry] = []
        self._unsaved_settlements: List[Settlement] = []

    async def initialize(self, snapshot: RaffleSnapshot = None):
        """Start a fresh raffle, or resume the one captured in ``snapshot``.

        A fresh raffle prices its entrance fee immediately, so an invalid
        price feed fails the deployment rather than opening a free raffle.
        """
        async with self._transaction():
            await self._load_recent_history()
            if snapshot is not None:
                self._apply_snapshot(snapshot, include_wallet=True)
                if self.state == RaffleState.CALCULATING and self.pending_request_id is not None:
                    if hasattr(self.coordinator, "track"):
                        self.coordinator.track(
                            self.pending_request_id,
                            self,
                            num_words=self.config.num_words,
                            confirmations=self.config.request_confirmations,
                        )
                logger.info(
                    f"Raffle resumed in state {self.state.name} at round {self.round_id} "
                    f"with {len(self.players)} players"
                )
            else:
                self.entrance_fee = await self.fee_oracle.current_entrance_fee(self.price_feed_address)
                self.last_timestamp = self.clock()
                logger.info(f"Raffle initialized with entrance fee {self.entrance_fee}")

    # Entry ledger

    async def enter(self, caller: str, paid_amount: int):
        """Enter the current round, paying ``paid_amount`` from the caller's wallet.

        Paying more than the entrance fee is allowed; the excess stays in the pool.
        """
        caller = normalize_address(caller)
        async with self._transaction() as events:
            if self.state != RaffleState.OPEN:
                raise RaffleNotOpen(f"Raffle is {self.state.name}", state=self.state.name)
            if paid_amount < self.entrance_fee:
                raise InsufficientEntryFee(
                    f"Entrance fee is {self.entrance_fee}, got {paid_amount}",
                    required=self.entrance_fee,
                    paid=paid_amount,
                )

            await self.wallet_service.debit_wallet(caller, paid_amount, f"Entry to round {self.round_id}")

            self.balance += paid_amount
            self.players.append(caller)
            self._record_entry(
                PlayerEntry(player=caller, round_id=self.round_id, amount=paid_amount, timestamp=self.clock())
            )
            events.append(
                EventService.build("EntryRecorded", player=caller, amount=paid_amount, round_id=self.round_id)
            )

    # Upkeep trigger

    def check_upkeep(self) -> bool:
        is_open = self.state == RaffleState.OPEN
        time_passed = self.clock() - self.last_timestamp >= self.config.interval
        has_players = len(self.players) >= self.min_players
        has_balance = self.balance > 0
        return is_open and time_passed and has_players and has_balance

    async def perform_upkeep(self, caller: str = None) -> int:
        """Close the round and request randomness. Anyone may call this."""
        async with self._transaction() as events:
            if not self.check_upkeep() or self.pending_request_id is not None:
                raise UpkeepNotNeeded(
                    balance=self.balance,
                    players=len(self.players),
                    state=self.state.name,
                )

            request_id = await self.coordinator.request_random_words(
                self.config.num_words, self.config.request_confirmations, self
            )

            self.state = RaffleState.CALCULATING
            self.pending_request_id = request_id
            events.append(EventService.build("UpkeepPerformed", request_id=request_id, round_id=self.round_id))

        logger.info(f"Upkeep performed by {caller or 'keeper'}: round {self.round_id}, request {request_id}")
        return request_id

    # Randomness settlement

    async def fulfill_random_words(self, caller: str, request_id: int, random_words: List[int]) -> str:
        """Randomness callback: pick the winner, pay out and open the next round"""
        async with self._transaction() as events:
            if normalize_address(caller) != self.config.coordinator_address:
                raise OnlyCoordinatorCanFulfill(f"{caller} is not the randomness coordinator")
            if self.state != RaffleState.CALCULATING or request_id != self.pending_request_id:
                logger.warning(f"Rejected randomness for request {request_id} (pending: {self.pending_request_id})")
                raise UnknownRequest(f"Request {request_id} is not pending", request_id=request_id)
            if not random_words or random_words[0] < 0:
                raise InvalidRandomWords("Expected at least one non-negative random word")
            if not self.players:
                raise NoPlayers("No players to draw from", request_id=request_id)

            random_word = int(random_words[0])
            winner = self.players[random_word % len(self.players)]
            total = self.balance

            # Priced first: a broken feed must stop settlement before any funds move
            next_fee = await self.fee_oracle.current_entrance_fee(self.price_feed_address)
            payouts = await self.payout_service.distribute(winner, total, round_id=self.round_id)

            now = self.clock()
            self._record_settlement(
                Settlement(
                    round_id=self.round_id,
                    request_id=request_id,
                    winner=winner,
                    random_word=random_word,
                    total=total,
                    payouts=payouts,
                    timestamp=now,
                )
            )
            events.append(EventService.build("WinnerPicked", winner=winner, round_id=self.round_id, amount=total))

            self.balance -= total
            self.recent_winner = winner
            self.last_payouts = payouts
            self.players = []
            self.last_timestamp = now
            self.pending_request_id = None
            self.state = RaffleState.OPEN
            self.entrance_fee = next_fee
            self.round_id += 1

        # Settled through the HTTP callback the coordinator never saw the answer
        if hasattr(self.coordinator, "forget"):
            self.coordinator.forget(request_id)
        logger.info(f"Winner picked: {winner} won round {self.round_id - 1} ({total} pooled)")
        return winner

    # Admin

    async def pause_lottery(self, caller: str):
        async with self._transaction() as events:
            self._require_admin(caller)
            if self.state != RaffleState.OPEN:
                # Pausing mid-settlement would strand the pending request and the pool
                raise RaffleNotOpen(f"Cannot pause while {self.state.name}", state=self.state.name)
            self.state = RaffleState.PAUSED
            events.append(EventService.build("Paused", account=normalize_address(caller)))

    async def unpause_lottery(self, caller: str):
        async with self._transaction() as events:
            self._require_admin(caller)
            if self.state != RaffleState.PAUSED:
                raise RaffleNotPaused(f"Cannot unpause while {self.state.name}", state=self.state.name)
            self.state = RaffleState.OPEN
            events.append(EventService.build("Unpaused", account=normalize_address(caller)))

    async def update_price_feed_address(self, caller: str, new_address: str):
        """Point the fee at another feed; the fee is repriced at the next settlement"""
        async with self._transaction() as events:
            self._require_admin(caller)
            new_address = normalize_address(new_address)
            if not new_address or new_address == ZERO_ADDRESS:
                raise InvalidAddress("Price feed address must not be empty or the zero address")
            self.price_feed_address = new_address
            events.append(EventService.build("AggregatorAddressUpdated", address=new_address))

    async def set_minimum_players(self, caller: str, value: int):
        async with self._transaction() as events:
            self._require_admin(caller)
            if value < 1:
                raise InvalidConfiguration("Minimum players must be at least 1", value=value)
            self.min_players = value
            events.append(EventService.build("MinimumPlayersUpdated", value=value))

    async def fund_wallet(self, caller: str, address: str, amount: int):
        """Credit native tokens to an address (development faucet)"""
        async with self._transaction():
            self._require_admin(caller)
            await self.wallet_service.credit_wallet(address, amount, "Faucet")

    # Getters

    def get_raffle_state(self) -> RaffleState:
        return self.state

    def get_entrance_fee(self) -> int:
        return self.entrance_fee

    def get_number_of_players(self) -> int:
        return len(self.players)

    def get_player(self, index: int) -> str:
        if index < 0 or index >= len(self.players):
            raise IndexError(f"No player at index {index}")
        return self.players[index]

    def get_recent_winner(self) -> Optional[str]:
        return self.recent_winner

    def get_last_timestamp(self) -> int:
        return self.last_timestamp

    def get_interval(self) -> int:
        return self.config.interval

    def get_minimum_players(self) -> int:
        return self.min_players

    def get_num_words(self) -> int:
        return self.config.num_words

    def get_request_confirmations(self) -> int:
        return self.config.request_confirmations

    def get_price_feed_address(self) -> str:
        return self.price_feed_address

    def get_balance(self) -> int:
        return self.balance

    def is_paused(self) -> bool:
        return self.state == RaffleState.PAUSED

    def get_player_history(self, address: str) -> List[PlayerEntry]:
        """Entries of ``address`` within the recent window, oldest first"""
        address = normalize_address(address)
        return [entry for entry in self.entries if entry.player == address]

    async def load_player_history(self, address: str, limit: int = 1000) -> List[PlayerEntry]:
        """Every stored entry of ``address``, oldest first"""
        if self.store is not None and hasattr(self.store, "player_history"):
            return await self.store.player_history(normalize_address(address), limit)
        return self.get_player_history(address)[-limit:]

    def get_payees(self) -> List[str]:
        return [payout.recipient for payout in self.last_payouts]

    def get_shares(self) -> List[int]:
        return [payout.amount for payout in self.last_payouts]

    def get_settlements(self, limit: int = 50) -> List[Settlement]:
        return list(reversed(self.settlements))[:limit]

    def get_status(self) -> RaffleStatusResponse:
        return RaffleStatusResponse(
            state=self.state,
            state_name=self.state.name,
            round_id=self.round_id,
            entrance_fee=self.entrance_fee,
            number_of_players=len(self.players),
            balance=self.balance,
            recent_winner=self.recent_winner,
            last_timestamp=self.last_timestamp,
            interval=self.config.interval,
            minimum_players=self.min_players,
            pending_request_id=self.pending_request_id,
            price_feed_address=self.price_feed_address,
            upkeep_needed=self.check_upkeep(),
        )

    # State

    def snapshot(self) -> RaffleSnapshot:
        return RaffleSnapshot(
            state=self.state,
            players=self.players,
            last_timestamp=self.last_timestamp,
            entrance_fee=self.entrance_fee,
            pending_request_id=self.pending_request_id,
            balance=self.balance,
            round_id=self.round_id,
            recent_winner=self.recent_winner,
            price_feed_address=self.price_feed_address,
            min_players=self.min_players,
            last_payouts=self.last_payouts,
            wallet_balances=self.wallet_service.balances,
        ).model_copy(deep=True)

    def _apply_snapshot(self, snapshot: RaffleSnapshot, include_wallet: bool = False):
        snapshot = snapshot.model_copy(deep=True)
        self.state = snapshot.state
        self.players = snapshot.players
        self.last_timestamp = snapshot.last_timestamp
        self.entrance_fee = snapshot.entrance_fee
        self.pending_request_id = snapshot.pending_request_id
        self.balance = snapshot.balance
        self.round_id = snapshot.round_id
        self.recent_winner = snapshot.recent_winner
        self.price_feed_address = snapshot.price_feed_address
        self.min_players = snapshot.min_players
        self.last_payouts = snapshot.last_payouts
        if include_wallet:
            self.wallet_service.balances = dict(snapshot.wallet_balances)

    def _require_admin(self, caller: str):
        if normalize_address(caller) != self.config.admin_address:
            raise AddressNotAuthorized(f"{caller} is not the raffle admin")

    def _record_entry(self, entry: PlayerEntry):
        self.entries.append(entry)
        del self.entries[:-self.history_limit]
        self._unsaved_entries.append(entry)

    def _record_settlement(self, settlement: Settlement):
        self.settlements.append(settlement)
        del self.settlements[:-self.history_limit]
        self._unsaved_settlements.append(settlement)

    async def _load_recent_history(self):
        if self.store is None or not hasattr(self.store, "recent_entries"):
            return
        self.entries = await self.store.recent_entries(self.history_limit)
        self.settlements = await self.store.recent_settlements(self.history_limit)

    @asynccontextmanager
    async def _transaction(self):
        events = []
        async with self._lock:
            saved_state = self.snapshot()
            saved_wallet = self.wallet_service.snapshot()
            saved_entries = list(self.entries)
            saved_settlements = list(self.settlements)
            self._unsaved_entries = []
            self._unsaved_settlements = []
            self.wallet_service.unsaved = []
            try:
                yield events
            except Exception:
                self._apply_snapshot(saved_state)
                self.wallet_service.restore(saved_wallet)
                self.entries = saved_entries
                self.settlements = saved_settlements
                raise

            if self.store is not None:
                try:
                    await self.store.commit(
                        self.snapshot(),
                        events=events,
                        transfers=self.wallet_service.unsaved,
                        settlements=self._unsaved_settlements,
                        entries=self._unsaved_entries,
                    )
                except Exception as e:
                    # The next commit rewrites the full snapshot
                    logger.error(f"Error persisting raffle state: {e}")

        await self.event_service.publish(events)
