from typing import List
import logging

from models.raffle import MAX_BPS, normalize_address
from models.wallet import Payout, PayoutRole
from services.wallet_service import WalletService

logger = logging.getLogger(__name__)


class PayoutService:
    def __init__(
        self,
        wallet_service: WalletService,
        admin_address: str,
        developer_address: str,
        admin_share_bps: int = 100,
        developer_share_bps: int = 100,
    ):
        self.wallet_service = wallet_service
        self.admin_address = normalize_address(admin_address)
        self.developer_address = normalize_address(developer_address)
        self.admin_share_bps = admin_share_bps
        self.developer_share_bps = developer_share_bps

    def calculate_shares(self, winner: str, total: int) -> List[Payout]:
        """Split total into developer, admin and winner shares.

        Developer and admin cuts are rounded down, so any integer-division
        remainder ends up in the winner's share and the three always sum to
        ``total``.
        """
        if total < 0:
            raise ValueError("Total must not be negative")

        developer_share = total * self.developer_share_bps // MAX_BPS
        admin_share = total * self.admin_share_bps // MAX_BPS
        winner_share = total - developer_share - admin_share

        return [
            Payout(recipient=normalize_address(winner), role=PayoutRole.WINNER, amount=winner_share),
            Payout(recipient=self.admin_address, role=PayoutRole.ADMIN, amount=admin_share),
            Payout(recipient=self.developer_address, role=PayoutRole.DEVELOPER, amount=developer_share),
        ]

    async def distribute(self, winner: str, total: int, round_id: int = None) -> List[Payout]:
        """Pay every share or none; raises TransferFailed after undoing partial credits"""
        payouts = self.calculate_shares(winner, total)
        label = f"round {round_id}" if round_id is not None else "raffle"

        await self.wallet_service.apply_credits(
            (payout.recipient, payout.amount, f"{payout.role.value.capitalize()} share for {label}")
            for payout in payouts
            if payout.amount > 0
        )

        logger.info(
            f"Distributed {total} for {label}: "
            + ", ".join(f"{p.role.value}={p.amount}" for p in payouts)
        )
        return payouts
