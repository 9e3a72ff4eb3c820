"""
Service fee calculation and the periodically refreshed fee/gas-price cache.
"""
import logging
import threading
from typing import Optional

from .chain import ChainClient
from .exceptions import SDKError
from .models import FeeSchedule

logger = logging.getLogger(__name__)

WHOLE_UNIT = 10 ** 18
FEE_SCALE = 10 ** 2
DEFAULT_POLL_INTERVAL = 30


class FeeCalculator:
    """
    Computes the service fee for a transferred amount.

    Partial units are rounded up, so 1.5 units is charged as 2. The result is
    clamped to ``[min, max]``; ``max == 0`` leaves the fee unbounded above.
    """

    def __init__(self, schedule: FeeSchedule):
        self.schedule = schedule

    def fee(self, amount: int) -> int:
        if amount < 0:
            raise ValueError("amount must not be negative")
        whole, remainder = divmod(amount, WHOLE_UNIT)
        if remainder:
            whole += 1
        fee = whole * self.schedule.rate * FEE_SCALE
        logger.debug(f"fee for {amount}: {fee} before clamping to {self.schedule}")
        if fee < self.schedule.min:
            fee = self.schedule.min
        if self.schedule.max != 0 and fee > self.schedule.max:
            fee = self.schedule.max
        return fee


class ChainStateCache:
    """Latest fee schedule and gas price fetched from the gateway."""

    def __init__(self, fee_schedule: Optional[FeeSchedule] = None, gas_price: Optional[int] = None):
        self._lock = threading.Lock()
        self._fee_schedule = fee_schedule or FeeSchedule()
        self._gas_price = gas_price

    @property
    def fee_schedule(self) -> FeeSchedule:
        with self._lock:
            return self._fee_schedule

    @fee_schedule.setter
    def fee_schedule(self, schedule: FeeSchedule) -> None:
        with self._lock:
            self._fee_schedule = schedule

    @property
    def gas_price(self) -> Optional[int]:
        with self._lock:
            return self._gas_price

    @gas_price.setter
    def gas_price(self, price: Optional[int]) -> None:
        with self._lock:
            self._gas_price = price

    def calculator(self) -> FeeCalculator:
        return FeeCalculator(self.fee_schedule)


class ChainStatePoller:
    """Background thread refreshing ``ChainStateCache`` on a fixed interval."""

    def __init__(
        self,
        chain: ChainClient,
        cache: ChainStateCache,
        poll_fee: bool = False,
        poll_gas_price: bool = False,
        interval: float = DEFAULT_POLL_INTERVAL
    ):
        self.chain = chain
        self.cache = cache
        self.poll_fee = poll_fee
        self.poll_gas_price = poll_gas_price
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self.poll_fee or self.poll_gas_price

    def poll_once(self) -> None:
        """Refresh every enabled value. Failures keep the previous value."""
        if self.poll_fee:
            try:
                self.cache.fee_schedule = self.chain.get_fee()
            except SDKError as e:
                logger.error(f"getFee refresh failed: {e.message}")
        if self.poll_gas_price:
            try:
                price = self.chain.gas_price()
            except SDKError as e:
                logger.error(f"gasPrice refresh failed: {e.message}")
            else:
                if price is not None:
                    self.cache.gas_price = price

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.poll_once()

    def start(self) -> None:
        if not self.enabled or (self._thread is not None and self._thread.is_alive()):
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="chain-state-poller", daemon=True)
        self._thread.start()
        logger.info(f"Chain state poller started (interval {self.interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
