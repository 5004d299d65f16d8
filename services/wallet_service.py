from datetime import datetime
from typing import Dict, Iterable, List, Tuple
import copy
import logging
import pytz

from models.raffle import normalize_address
from models.wallet import Transfer, TransferType, TransferStatus
from services.errors import InsufficientFunds, TransferFailed

logger = logging.getLogger(__name__)


class WalletService:
    """Native-token balances of every address the raffle pays or is paid by"""

    def __init__(self, balances: Dict[str, int] = None, history_limit: int = 1000):
        self.balances: Dict[str, int] = {}
        # Recent transfers only, the full ledger is persisted by the store
        self.transfers: List[Transfer] = []
        self.history_limit = history_limit
        # Transfers the store has not seen yet
        self.unsaved: List[Transfer] = []
        # Recipients that refuse incoming funds, like a contract without a receive function
        self.rejecting: set = set()
        for address, amount in (balances or {}).items():
            self.balances[normalize_address(address)] = int(amount)

    async def credit_wallet(self, address: str, amount: int, description: str) -> Transfer:
        """Credit amount to an address"""
        if amount <= 0:
            raise ValueError("Amount must be positive")

        address = normalize_address(address)
        if address in self.rejecting:
            raise TransferFailed(f"Transfer of {amount} to {address} was rejected", recipient=address)

        self.balances[address] = self.balances.get(address, 0) + amount
        return self._record(address, TransferType.CREDIT, amount, description)

    async def debit_wallet(self, address: str, amount: int, description: str) -> Transfer:
        """Debit amount from an address"""
        if amount <= 0:
            raise ValueError("Amount must be positive")

        address = normalize_address(address)
        if self.balances.get(address, 0) < amount:
            raise InsufficientFunds(
                f"Insufficient balance for {address}",
                balance=self.balances.get(address, 0),
                required=amount,
            )

        self.balances[address] -= amount
        return self._record(address, TransferType.DEBIT, amount, description)

    async def apply_credits(self, credits: Iterable[Tuple[str, int, str]]) -> List[Transfer]:
        """Credit every (address, amount, description) or none of them"""
        applied: List[Transfer] = []
        try:
            for address, amount, description in credits:
                applied.append(await self.credit_wallet(address, amount, description))
        except TransferFailed:
            for transfer in reversed(applied):
                self.balances[transfer.address] -= transfer.amount
                transfer.status = TransferStatus.REVERTED
            logger.warning(f"Reverted {len(applied)} credits after a rejected transfer")
            raise
        return applied

    async def get_balance(self, address: str) -> int:
        """Get an address's current balance"""
        return self.balances.get(normalize_address(address), 0)

    async def get_transfers(self, address: str, limit: int = 50) -> List[Transfer]:
        """Most recent transfers first"""
        address = normalize_address(address)
        history = [t for t in self.transfers if t.address == address]
        return list(reversed(history))[:limit]

    def reject_transfers_to(self, address: str):
        self.rejecting.add(normalize_address(address))

    def accept_transfers_to(self, address: str):
        self.rejecting.discard(normalize_address(address))

    def snapshot(self):
        return copy.deepcopy((self.balances, self.transfers))

    def restore(self, snapshot):
        self.balances, self.transfers = snapshot

    def _record(self, address: str, transfer_type: TransferType, amount: int, description: str) -> Transfer:
        transfer = Transfer(
            address=address,
            type=transfer_type,
            amount=amount,
            description=description,
            date=datetime.now(pytz.UTC),
        )
        self.transfers.append(transfer)
        del self.transfers[:-self.history_limit]
        self.unsaved.append(transfer)
        logger.debug(f"{transfer_type.value} {amount} {address}: {description}")
        return transfer
