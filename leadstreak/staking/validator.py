"""
Stake Validator — the gate in front of every stake commitment.

Behavioral Contract:
- Ensures an identity is bound, acquiring one if needed (suspends the caller)
- Checks the ledger balance against the requested stake
- Never debits. Callers debit only after a successful validation, in the same
  uninterrupted step as the write it pays for, so a failed later step leaves
  the ledger untouched.
- Identity success does not imply balance sufficiency; both checks are required.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from leadstreak.errors import IdentityAcquisitionError
from leadstreak.ledger.ledger import Ledger
from leadstreak.models.ledger import LedgerEntry, ReserveOutcome, Shortfall
from leadstreak.models.notification import NotificationKind
from leadstreak.notifications.bus import NotificationBus
from leadstreak.staking.wallet import WalletSession

logger = logging.getLogger(__name__)


class StakeValidator:

    def __init__(
        self,
        ledger: Ledger,
        wallet: WalletSession,
        notifications: NotificationBus,
        deposit_amount: Decimal = Decimal("2.0"),
    ):
        self.ledger = ledger
        self.wallet = wallet
        self.notifications = notifications
        self.deposit_amount = deposit_amount
        self._shortfall: Optional[Shortfall] = None

    @property
    def shortfall(self) -> Optional[Shortfall]:
        """The outstanding insufficient-funds condition, if any."""
        return self._shortfall

    async def validate(self, amount: Decimal) -> bool:
        """
        Return True if `amount` can be staked now.

        The balance check runs after the last suspension point, so a caller
        that debits immediately on True cannot be interleaved.
        """
        if not self.wallet.is_connected:
            was_connecting = self.wallet.is_connecting
            try:
                address = await self.wallet.connect()
            except IdentityAcquisitionError as e:
                logger.warning("Stake validation blocked: %s", e)
                self.notifications.publish(
                    NotificationKind.IDENTITY_FAILED, str(e)
                )
                return False
            if not was_connecting:
                self.notifications.publish(
                    NotificationKind.IDENTITY_ACQUIRED,
                    f"Wallet connected: {address}",
                    payload={"address": address},
                )

        if self.ledger.reserve(amount) == ReserveOutcome.INSUFFICIENT:
            self._shortfall = Shortfall(
                requested=amount,
                available=self.ledger.balance,
                detected_at=datetime.utcnow(),
            )
            logger.info(
                "Insufficient funds: requested %s, available %s",
                amount, self.ledger.balance,
            )
            self.notifications.publish(
                NotificationKind.INSUFFICIENT_FUNDS,
                "Your staked balance is depleted. Deposit more to continue "
                "creating high-stakes commitments.",
                payload={
                    "requested": str(amount),
                    "available": str(self.ledger.balance),
                    "top_up_amount": str(self.deposit_amount),
                },
            )
            return False

        return True

    def deposit_and_clear(self, amount: Optional[Decimal] = None) -> LedgerEntry:
        """Top-up action: credit the ledger and dismiss the shortfall."""
        entry = self.ledger.deposit(amount if amount is not None else self.deposit_amount)
        self._shortfall = None
        return entry

    def dismiss_shortfall(self) -> None:
        self._shortfall = None
