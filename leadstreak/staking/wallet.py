"""
Wallet Session — the simulated identity (wallet address) connection.

The engine only needs to know whether an address is bound, and to acquire one
when it is not. Acquisition suspends the caller; concurrent callers share the
same in-flight acquisition.
"""

import asyncio
import logging
from typing import Optional, Protocol

from leadstreak.errors import IdentityAcquisitionError

logger = logging.getLogger(__name__)

SIMULATED_ADDRESS = "0x71C7656EC7ab88b098defB751B7401B5f6d8976F"


class IdentityProvider(Protocol):
    """Protocol for identity acquisition: pluggable backend."""

    async def acquire(self) -> str: ...


class SimulatedWalletProvider:
    """Stands in for a browser wallet extension approving a connection request."""

    def __init__(self, latency_seconds: float = 1.2, address: str = SIMULATED_ADDRESS):
        self.latency_seconds = latency_seconds
        self.address = address

    async def acquire(self) -> str:
        await asyncio.sleep(self.latency_seconds)
        return self.address


class WalletSession:
    """Holds the bound address, if any, and serializes acquisition."""

    def __init__(
        self,
        provider: Optional[IdentityProvider] = None,
        timeout_seconds: float = 10.0,
    ):
        self.provider = provider or SimulatedWalletProvider()
        self.timeout_seconds = timeout_seconds
        self._address: Optional[str] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def address(self) -> Optional[str]:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._address is not None

    @property
    def is_connecting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def connect(self) -> str:
        """Return the bound address, acquiring one first if necessary."""
        if self._address:
            return self._address
        if self._pending is None or self._pending.done():
            self._pending = asyncio.ensure_future(self._acquire())
        return await asyncio.shield(self._pending)

    async def _acquire(self) -> str:
        try:
            address = await asyncio.wait_for(
                self.provider.acquire(), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise IdentityAcquisitionError(
                f"Wallet connection timed out after {self.timeout_seconds}s"
            ) from e
        except Exception as e:
            raise IdentityAcquisitionError(f"Wallet connection failed: {e}") from e

        if not address:
            raise IdentityAcquisitionError("Wallet provider returned no address")
        self._address = address
        logger.info("Wallet connected: %s...%s", address[:6], address[-4:])
        return address

    def disconnect(self) -> None:
        self._address = None
